#!/usr/bin/env python3
"""
export_exercises.py - Write a printable exercise sheet from the course catalog.

Usage:
  python scripts/export_exercises.py --lesson lesson-1-2
  python scripts/export_exercises.py --lesson lesson-1-2 --scope unit --solutions hint
  python scripts/export_exercises.py --lesson lesson-1-1 --scope course --output sheets/course.pdf
"""

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from statlab.classroom import find_lesson, iter_lessons, load_course
from statlab.config import load_settings
from statlab.errors import ExportError
from statlab.export import (
    ExportScope,
    SolutionDetail,
    build_exercise_pdf,
    export_filename,
    select_exercises,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Export course exercises to PDF",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Scopes:
  lesson  - exercises of the given lesson (default)
  unit    - exercises of every lesson in the lesson's unit
  course  - every exercise in the course

Solution detail (cumulative):
  none, hint, guide, full (default)
        """
    )
    parser.add_argument(
        "--catalog",
        type=Path,
        default=None,
        help="Path to course.yaml (default: STATLAB_CATALOG or the bundled catalog)"
    )
    parser.add_argument(
        "--lesson",
        type=str,
        default=None,
        help="Lesson id the export starts from (default: first lesson)"
    )
    parser.add_argument(
        "--scope",
        choices=[s.value for s in ExportScope],
        default=ExportScope.LESSON.value,
        help="What to export (default: lesson)"
    )
    parser.add_argument(
        "--solutions",
        choices=[d.value for d in SolutionDetail],
        default=SolutionDetail.FULL.value,
        help="How much of each solution to include (default: full)"
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output PDF path (default: <title>.pdf in the current directory)"
    )
    parser.add_argument(
        "--list-lessons",
        action="store_true",
        help="List lesson ids and exit"
    )

    args = parser.parse_args()

    catalog = args.catalog or load_settings().catalog_path
    try:
        course = load_course(catalog)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Could not load course catalog: {e}")
        sys.exit(1)

    if args.list_lessons:
        for lesson in iter_lessons(course):
            print(f"{lesson.id}\t{len(lesson.exercises)} exercises\t{lesson.title}")
        return

    lesson_id = args.lesson
    if lesson_id is None:
        first = next(iter_lessons(course), None)
        if first is None:
            logger.error("The course has no lessons")
            sys.exit(1)
        lesson_id = first.id
    elif find_lesson(course, lesson_id) is None:
        logger.error(f"Lesson not found: {lesson_id}")
        logger.error("Use --list-lessons to see the available ids")
        sys.exit(1)

    try:
        selection = select_exercises(course, args.scope, lesson_id)
    except ExportError as e:
        logger.error(str(e))
        sys.exit(1)

    output = args.output or Path(export_filename(selection))
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(build_exercise_pdf(selection, args.solutions))

    logger.info(f"Wrote {len(selection.exercises)} exercises to {output}")


if __name__ == "__main__":
    main()

"""
StatLab Export - Printable exercise sheets.

This module provides:
- Exercise selection by scope (lesson, unit, course)
- Cumulative solution tiers (none, hint, guide, full)
- PDF rendering with reportlab, LaTeX math flattened to Unicode
"""

from .selection import (
    ExportScope,
    SolutionDetail,
    ExportSelection,
    select_exercises,
    solution_sections,
    export_filename,
)

from .pdf import (
    build_exercise_pdf,
    markdown_to_lines,
    latex_to_unicode,
    register_fonts,
)

__all__ = [
    # Selection
    "ExportScope",
    "SolutionDetail",
    "ExportSelection",
    "select_exercises",
    "solution_sections",
    "export_filename",
    # PDF
    "build_exercise_pdf",
    "markdown_to_lines",
    "latex_to_unicode",
    "register_fonts",
]

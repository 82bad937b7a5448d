"""
Classroom - Application state owner for the StatLab portal.

All state lives in one immutable ClassroomState snapshot. Views read
`Classroom.state` (or subscribe to changes) and mutate it only through the
named commands below; every command that changes anything swaps in a new
snapshot and writes affected records through to storage.

Asynchronous commands (AI calls) catch failures at this boundary and turn
them into state the view can render: an error on the achievement display,
an EVALUATION_ERROR, or an error message string.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Mapping, Optional, Sequence

from statlab.ai import ChatSessionCache, GeminiGateway
from statlab.config import MILESTONES
from statlab.errors import AchievementError
from statlab.schemas import (
    Achievement,
    AchievementDisplayState,
    ChatMessage,
    Course,
    Evaluation,
    EvaluationResult,
    Exercise,
    ExerciseDraft,
    GenerationOptions,
    LessonStars,
    MilestoneStatus,
    StructuredLesson,
    StudentProgress,
    UserProfile,
)

from . import achievements as achievement_rules
from . import progress as progress_rules
from .loader import append_exercises, find_exercise, find_lesson
from .storage import ClassroomStorage


logger = logging.getLogger(__name__)

VIEW_MODES = ("student", "teacher")
PAGES = ("home", "lesson", "about")
EMPTY_ANSWER_FEEDBACK = "Please type your answer before checking."


@dataclass(frozen=True)
class ClassroomState:
    """Immutable snapshot of everything the views render."""
    course: Course
    progress: StudentProgress
    achievements: Mapping[int, Achievement]
    profile: UserProfile
    logged_in: bool = False
    view_mode: str = "student"
    page: str = "home"
    selected_lesson_id: Optional[str] = None
    test_mode: bool = False
    is_generating: bool = False
    achievement_display: Optional[AchievementDisplayState] = None
    materials: Mapping[str, StructuredLesson] = field(default_factory=dict)
    exercise_chats: Mapping[str, tuple[ChatMessage, ...]] = field(default_factory=dict)
    tutor_messages: tuple[ChatMessage, ...] = ()

    @property
    def total_exercises(self) -> int:
        return progress_rules.count_exercises(self.course)

    @property
    def completed_exercises(self) -> int:
        completed, _ = progress_rules.aggregate(self.course, self.progress)
        return completed


class Classroom:
    """Single controller for the portal's state."""

    def __init__(
        self,
        course: Course,
        storage: ClassroomStorage,
        gateway: GeminiGateway,
        narratives: Optional[Mapping[int, achievement_rules.MilestoneNarrative]] = None,
        milestones: Sequence[int] = MILESTONES,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            course: Seed course tree
            storage: Typed persistence for profile, progress and achievements
            gateway: AI operations
            narratives: Milestone narratives (default: achievements prompt)
            milestones: Ascending milestone thresholds
            clock: Source of achievement unlock timestamps
        """
        self.storage = storage
        self.gateway = gateway
        self.milestones = tuple(sorted(milestones))
        self.narratives = narratives if narratives is not None else achievement_rules.load_narratives()
        self._clock = clock
        self._listeners: list[Callable[[ClassroomState], None]] = []
        self._exercise_sessions = ChatSessionCache()
        self._tutor_chat = None

        self._state = ClassroomState(
            course=course,
            progress=storage.load_progress(),
            achievements=storage.load_achievements(),
            profile=storage.load_profile(),
            logged_in=storage.load_logged_in(),
        )

    # -------------------------------------------------------------------------
    # State plumbing
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ClassroomState:
        return self._state

    def subscribe(self, listener: Callable[[ClassroomState], None]) -> Callable[[], None]:
        """Register a listener called with each new snapshot. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, **changes) -> ClassroomState:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    def _require_lesson(self, lesson_id: str):
        lesson = find_lesson(self._state.course, lesson_id)
        if lesson is None:
            raise KeyError(f"Lesson not found: {lesson_id}")
        return lesson

    # -------------------------------------------------------------------------
    # Session and navigation
    # -------------------------------------------------------------------------

    def login(self):
        self.storage.save_logged_in()
        self._commit(logged_in=True)

    def logout(self):
        self.storage.clear_logged_in()
        self._exercise_sessions.clear()
        self._tutor_chat = None
        self._commit(
            logged_in=False,
            page="home",
            selected_lesson_id=None,
            achievement_display=None,
            exercise_chats={},
            tutor_messages=(),
        )

    def update_profile(self, profile: UserProfile):
        self.storage.save_profile(profile)
        self._commit(profile=profile)

    def set_view_mode(self, view_mode: str):
        if view_mode not in VIEW_MODES:
            raise ValueError(f"Unknown view mode: {view_mode}")
        self._commit(view_mode=view_mode)

    def toggle_test_mode(self) -> bool:
        return self._commit(test_mode=not self._state.test_mode).test_mode

    def select_lesson(self, lesson_id: str):
        self._require_lesson(lesson_id)
        self._commit(selected_lesson_id=lesson_id, page="lesson")

    def set_page(self, page: str):
        if page not in PAGES:
            raise ValueError(f"Unknown page: {page}")
        # The lesson page needs a selected lesson
        if page == "lesson" and self._state.selected_lesson_id is None:
            page = "home"
        self._commit(page=page)

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    def mark_complete(self, lesson_id: str, exercise_id: str) -> bool:
        """
        Mark an exercise complete.

        Returns True if progress changed. Repeated calls are no-ops: no new
        snapshot, no storage write.
        """
        lesson = self._require_lesson(lesson_id)
        if find_exercise(lesson, exercise_id) is None:
            raise KeyError(f"Exercise {exercise_id} not found in lesson {lesson_id}")

        current = self._state.progress
        updated = progress_rules.mark_complete(current, lesson_id, exercise_id)
        if updated is current:
            return False

        self._commit(progress=updated)
        self.storage.save_progress(updated)
        return True

    def lesson_stars(self, lesson_id: str) -> LessonStars:
        return progress_rules.lesson_stars(self._require_lesson(lesson_id), self._state.progress)

    def overall_progress(self) -> tuple[int, int]:
        return progress_rules.aggregate(self._state.course, self._state.progress)

    # -------------------------------------------------------------------------
    # Achievements
    # -------------------------------------------------------------------------

    def available_milestones(self) -> list[int]:
        return achievement_rules.available_milestones(self._state.total_exercises, self.milestones)

    def milestone_status(self, milestone: int) -> MilestoneStatus:
        state = self._state
        return achievement_rules.milestone_status(
            milestone, state.completed_exercises, state.achievements, state.test_mode
        )

    def milestone_statuses(self) -> list[tuple[int, MilestoneStatus]]:
        return [(m, self.milestone_status(m)) for m in self.available_milestones()]

    async def claim_achievement(self, milestone: int) -> Optional[AchievementDisplayState]:
        """
        Claim the reward for a milestone.

        - A generation already in flight (any milestone): no-op, even for a
          claimed milestone, so the pending reward keeps the panel.
        - Already claimed: show the stored record, never regenerate.
        - Still locked: no-op.
        - Otherwise generate, persist on success, show an error on failure.

        Returns the resulting display state, or None for a no-op.
        """
        achievement_rules.validate_milestone(milestone, self.milestones)
        state = self._state

        if state.is_generating:
            logger.info(f"Ignoring claim for {milestone}: a reward is already being generated")
            return None

        existing = state.achievements.get(milestone)
        if existing is not None:
            return self._commit(
                achievement_display=achievement_rules.display_from_achievement(existing)
            ).achievement_display

        if self.milestone_status(milestone) is MilestoneStatus.LOCKED:
            logger.warning(f"Ignoring claim for locked milestone {milestone}")
            return None

        self._commit(
            is_generating=True,
            achievement_display=achievement_rules.loading_display(milestone),
        )
        try:
            achievement = await self._generate_achievement(milestone, state)
        except Exception as e:
            if isinstance(e, AchievementError):
                logger.warning(f"Reward for milestone {milestone} failed: {e}")
            else:
                logger.exception(f"Unexpected failure generating reward for milestone {milestone}")
            self._show_if_current(milestone, achievement_rules.error_display(milestone, e))
        else:
            stored = self._store_achievement(achievement)
            self._show_if_current(milestone, achievement_rules.display_from_achievement(stored))
        finally:
            self._commit(is_generating=False)

        display = self._state.achievement_display
        return display if display is not None and display.milestone == milestone else None

    async def retry_achievement(self, milestone: int) -> Optional[AchievementDisplayState]:
        """Re-issue generation for a milestone after a failure."""
        return await self.claim_achievement(milestone)

    def dismiss_achievement(self):
        self._commit(achievement_display=None)

    async def _generate_achievement(self, milestone: int, state: ClassroomState) -> Achievement:
        request = achievement_rules.build_artifact_request(
            milestone,
            state.profile,
            state.achievements,
            self.narratives,
            self.milestones,
        )
        result = await self.gateway.generate_achievement_artifact(request)
        if isinstance(result, str):
            raise AchievementError(result)
        return achievement_rules.create_achievement(milestone, result, self._clock())

    def _store_achievement(self, achievement: Achievement) -> Achievement:
        """Persist a new achievement unless one already exists for its milestone."""
        current = self._state.achievements
        if achievement.milestone in current:
            logger.warning(f"Keeping existing reward for milestone {achievement.milestone}")
            return current[achievement.milestone]

        achievements = {**current, achievement.milestone: achievement}
        self._commit(achievements=achievements)
        self.storage.save_achievements(achievements)
        return achievement

    def _show_if_current(self, milestone: int, display: AchievementDisplayState):
        # The dialog may have been dismissed while generation was running
        current = self._state.achievement_display
        if current is not None and current.milestone == milestone:
            self._commit(achievement_display=display)

    # -------------------------------------------------------------------------
    # Exercises
    # -------------------------------------------------------------------------

    def save_exercises(self, lesson_id: str, drafts: Sequence[ExerciseDraft]) -> list[Exercise]:
        """Append drafts to a lesson, assigning ids. Returns the saved exercises."""
        course, saved = append_exercises(self._state.course, lesson_id, drafts)
        if saved:
            self._commit(course=course)
        return saved

    def save_exercise(self, lesson_id: str, draft: ExerciseDraft) -> Exercise:
        return self.save_exercises(lesson_id, [draft])[0]

    async def generate_exercise(self, lesson_id: str, instruction: str) -> ExerciseDraft | str:
        """Send a teacher instruction to the lesson's exercise chat."""
        lesson = self._require_lesson(lesson_id)
        chat = self._exercise_sessions.get_or_create(
            lesson_id, lambda: self.gateway.create_exercise_chat(lesson.title)
        )
        self._append_chat(lesson_id, ChatMessage(role="user", content=instruction, timestamp=time.time()))

        result = await self.gateway.generate_exercise(chat, lesson.title, lesson.exercises, instruction)

        self._append_chat(lesson_id, ChatMessage(role="model", content=result, timestamp=time.time()))
        return result

    def reset_exercise_chat(self, lesson_id: str):
        self._exercise_sessions.invalidate(lesson_id)
        chats = {k: v for k, v in self._state.exercise_chats.items() if k != lesson_id}
        self._commit(exercise_chats=chats)

    def _append_chat(self, lesson_id: str, message: ChatMessage):
        chats = dict(self._state.exercise_chats)
        chats[lesson_id] = (*chats.get(lesson_id, ()), message)
        self._commit(exercise_chats=chats)

    async def submit_answer(self, lesson_id: str, exercise_id: str, answer: str) -> Evaluation:
        """Evaluate a student's answer; a correct answer completes the exercise."""
        lesson = self._require_lesson(lesson_id)
        exercise = find_exercise(lesson, exercise_id)
        if exercise is None:
            raise KeyError(f"Exercise {exercise_id} not found in lesson {lesson_id}")

        if not answer.strip():
            return Evaluation(result=EvaluationResult.EVALUATION_ERROR, feedback=EMPTY_ANSWER_FEEDBACK)

        evaluation = await self.gateway.evaluate_answer(answer, exercise.solution)
        if evaluation.result is EvaluationResult.CORRECT:
            self.mark_complete(lesson_id, exercise_id)
        return evaluation

    # -------------------------------------------------------------------------
    # Lesson material
    # -------------------------------------------------------------------------

    async def generate_material(
        self, lesson_id: str, options: GenerationOptions
    ) -> StructuredLesson | str:
        lesson = self._require_lesson(lesson_id)
        result = await self.gateway.generate_lesson_material(lesson.title, options)
        if isinstance(result, StructuredLesson):
            self._commit(materials={**self._state.materials, lesson_id: result})
        return result

    def clear_material(self, lesson_id: str):
        materials = {k: v for k, v in self._state.materials.items() if k != lesson_id}
        self._commit(materials=materials)

    async def ask_about_material(self, lesson_id: str, question: str) -> str:
        material = self._state.materials.get(lesson_id)
        if material is None:
            raise KeyError(f"No generated material for lesson {lesson_id}")
        return await self.gateway.answer_question_about_lesson(material.as_text(), question)

    # -------------------------------------------------------------------------
    # Tutor chat
    # -------------------------------------------------------------------------

    async def open_tutor(self) -> tuple[ChatMessage, ...]:
        """Start the tutor conversation with its greeting, once."""
        if self._tutor_chat is None:
            self._tutor_chat = self.gateway.create_tutor_chat()
        if not self._state.tutor_messages:
            greeting = self.gateway.tutor_prompt["greeting"]
            reply = await self.gateway.ask_tutor(self._tutor_chat, greeting)
            self._commit(tutor_messages=(
                ChatMessage(role="model", content=reply, timestamp=time.time()),
            ))
        return self._state.tutor_messages

    async def ask_tutor(self, message: str) -> str:
        if self._tutor_chat is None:
            self._tutor_chat = self.gateway.create_tutor_chat()
        self._commit(tutor_messages=(
            *self._state.tutor_messages,
            ChatMessage(role="user", content=message, timestamp=time.time()),
        ))
        reply = await self.gateway.ask_tutor(self._tutor_chat, message)
        self._commit(tutor_messages=(
            *self._state.tutor_messages,
            ChatMessage(role="model", content=reply, timestamp=time.time()),
        ))
        return reply

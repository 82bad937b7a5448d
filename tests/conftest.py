"""
Shared fixtures for StatLab tests.

Provides a small course, temporary storage, a scripted gateway for
controller tests and a fake google-genai client for gateway tests.
"""

import asyncio
from datetime import datetime
from types import SimpleNamespace
from typing import Any, Optional

import pytest

from statlab.classroom import (
    Classroom,
    ClassroomStorage,
    KeyValueStore,
    MilestoneNarrative,
)
from statlab.config import MILESTONES, Settings
from statlab.schemas import (
    ArtifactRequest,
    ArtifactResult,
    Course,
    Difficulty,
    Evaluation,
    EvaluationResult,
    Exercise,
    ExerciseDraft,
    ExerciseType,
    Lesson,
    Solution,
    StructuredLesson,
    Unit,
)


FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0)
IMAGE_BASE64 = "aW1hZ2UtYnl0ZXM="  # base64 of b"image-bytes"


# -----------------------------------------------------------------------------
# Builders
# -----------------------------------------------------------------------------

def make_solution(tag: str = "") -> Solution:
    return Solution(
        hint=f"Hint {tag}".strip(),
        starting_guide=f"Guide {tag}".strip(),
        full_solution=f"Full solution {tag}".strip(),
    )


def make_draft(
    statement: str = "Compute the mean of 1, 2, 3.",
    difficulty: Difficulty = Difficulty.EASY,
    exercise_type: ExerciseType = ExerciseType.CALCULATION,
) -> ExerciseDraft:
    return ExerciseDraft(
        problem_statement=statement,
        difficulty=difficulty,
        type=exercise_type,
        solution=make_solution(statement[:10]),
    )


def make_exercise(exercise_id: str, **kwargs) -> Exercise:
    draft = make_draft(**kwargs)
    return Exercise(id=exercise_id, **draft.model_dump())


def make_lesson(lesson_id: str, count: int) -> Lesson:
    return Lesson(
        id=lesson_id,
        title=f"Lesson {lesson_id}",
        exercises=[make_exercise(f"{lesson_id}-ex{i}") for i in range(1, count + 1)],
    )


def make_artifact(request: ArtifactRequest) -> ArtifactResult:
    return ArtifactResult(
        title=request.title,
        narrative=request.narrative,
        content_base64=IMAGE_BASE64,
    )


# -----------------------------------------------------------------------------
# Course and storage
# -----------------------------------------------------------------------------

@pytest.fixture
def sample_course() -> Course:
    """Two units, ten exercises in total; lesson-b2 has no exercises."""
    return Course(
        title="Statistics 101",
        units=[
            Unit(id="unit-a", title="Descriptive", lessons=[
                make_lesson("lesson-a1", 4),
                make_lesson("lesson-a2", 1),
            ]),
            Unit(id="unit-b", title="Probability", lessons=[
                make_lesson("lesson-b1", 5),
                make_lesson("lesson-b2", 0),
            ]),
        ],
    )


@pytest.fixture
def store(tmp_path) -> KeyValueStore:
    return KeyValueStore(tmp_path / "portal.db")


@pytest.fixture
def storage(store) -> ClassroomStorage:
    return ClassroomStorage(store)


@pytest.fixture
def narratives() -> dict[int, MilestoneNarrative]:
    return {
        m: MilestoneNarrative(
            title=f"Title {m}",
            narrative=f"Story {m}",
            prompt=f"Prompt {m}",
            generic_prompt="Generic subject" if m == MILESTONES[0] else None,
        )
        for m in MILESTONES
    }


# -----------------------------------------------------------------------------
# Scripted gateway (controller tests)
# -----------------------------------------------------------------------------

class FakeGateway:
    """
    Stands in for GeminiGateway with scripted results.

    `artifact_result` may be an ArtifactResult, an error string, an
    exception to raise, or None to echo the request into a result.
    Setting `artifact_gate` to an asyncio.Event holds artifact generation
    until the event is set.
    """

    def __init__(self):
        self.tutor_prompt = {"greeting": "Hello, what is your question?"}
        self.artifact_result: Any = None
        self.artifact_gate: Optional[asyncio.Event] = None
        self.artifact_calls: list[ArtifactRequest] = []
        self.evaluation = Evaluation(result=EvaluationResult.CORRECT, feedback="Well done.")
        self.evaluate_calls: list[tuple[str, Solution]] = []
        self.exercise_result: ExerciseDraft | str = make_draft("Generated exercise")
        self.exercise_calls: list[tuple[Any, str, int, str]] = []
        self.chats_created: list[str] = []
        self.material_result: StructuredLesson | str = StructuredLesson(
            introduction="<p>Intro</p>",
            theory="<p>Theory</p>",
            examples="<p>Examples</p>",
            reflection_questions="<p>Questions</p>",
        )
        self.material_calls: list[tuple[str, Any]] = []
        self.tutor_messages: list[str] = []
        self.lesson_questions: list[tuple[str, str]] = []

    async def generate_achievement_artifact(self, request):
        self.artifact_calls.append(request)
        if self.artifact_gate is not None:
            await self.artifact_gate.wait()
        result = self.artifact_result
        if isinstance(result, Exception):
            raise result
        if result is None:
            return make_artifact(request)
        return result

    async def evaluate_answer(self, student_answer, solution):
        self.evaluate_calls.append((student_answer, solution))
        return self.evaluation

    def create_exercise_chat(self, lesson_title):
        self.chats_created.append(lesson_title)
        return SimpleNamespace(lesson_title=lesson_title)

    async def generate_exercise(self, chat, lesson_title, existing_exercises, instruction):
        self.exercise_calls.append((chat, lesson_title, len(existing_exercises), instruction))
        return self.exercise_result

    async def generate_lesson_material(self, topic, options):
        self.material_calls.append((topic, options))
        return self.material_result

    def create_tutor_chat(self):
        return SimpleNamespace(kind="tutor")

    async def ask_tutor(self, chat, message):
        self.tutor_messages.append(message)
        return f"Oracle says: {message}"

    async def answer_question_about_lesson(self, material, question):
        self.lesson_questions.append((material, question))
        return f"Answer to {question}"


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def classroom(sample_course, storage, fake_gateway, narratives) -> Classroom:
    return Classroom(
        sample_course,
        storage,
        fake_gateway,
        narratives=narratives,
        clock=lambda: FIXED_NOW,
    )


# -----------------------------------------------------------------------------
# Fake google-genai client (gateway tests)
# -----------------------------------------------------------------------------

def text_response(text: Optional[str]) -> SimpleNamespace:
    return SimpleNamespace(text=text, function_calls=None, candidates=None)


def function_call_response(name: str, args: Any) -> SimpleNamespace:
    return SimpleNamespace(
        text=None,
        function_calls=[SimpleNamespace(name=name, args=args)],
        candidates=None,
    )


def image_response(data: Optional[bytes]) -> SimpleNamespace:
    parts = []
    if data is not None:
        parts.append(SimpleNamespace(
            text=None,
            inline_data=SimpleNamespace(data=data, mime_type="image/png"),
        ))
    return SimpleNamespace(
        text=None,
        function_calls=None,
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))],
    )


class FakeChat:
    def __init__(self, model, config, responses):
        self.model = model
        self.config = config
        self.responses = responses
        self.sent: list[Any] = []

    async def send_message(self, message):
        self.sent.append(message)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeGenaiClient:
    """Mimics client.aio.models / client.aio.chats of google-genai."""

    def __init__(self):
        self.responses: list[Any] = []
        self.generate_calls: list[dict] = []
        self.chats: list[FakeChat] = []

        async def generate_content(model, contents, config=None):
            self.generate_calls.append({"model": model, "contents": contents, "config": config})
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response

        def create_chat(model, config=None):
            chat = FakeChat(model, config, self.responses)
            self.chats.append(chat)
            return chat

        self.aio = SimpleNamespace(
            models=SimpleNamespace(generate_content=generate_content),
            chats=SimpleNamespace(create=create_chat),
        )


@pytest.fixture
def genai_client() -> FakeGenaiClient:
    return FakeGenaiClient()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        home=tmp_path,
        db_path=tmp_path / "portal.db",
        catalog_path=tmp_path / "course.yaml",
        gemini_api_key=None,
        exercise_model="test-pro",
        fast_model="test-flash",
        image_model="test-image",
    )


@pytest.fixture
def gateway(genai_client, settings):
    from statlab.ai import GeminiGateway
    return GeminiGateway(client=genai_client, settings=settings)

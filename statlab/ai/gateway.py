"""
GeminiGateway - Domain-level façade over the Gemini API.

Every operation is a single asynchronous call with no internal retry and
returns either a validated payload or an error value (a message string, or
an EVALUATION_ERROR Evaluation). Network faults, empty responses and schema
violations never escape as exceptions; retrying is left to the user.
"""

import base64
import binascii
import logging
from pathlib import Path
from typing import Any, Optional, Sequence

from google import genai
from google.genai import types as genai_types

from statlab.config import Settings, load_settings
from statlab.schemas import (
    ArtifactRequest,
    ArtifactResult,
    Difficulty,
    Evaluation,
    EvaluationResult,
    Exercise,
    ExerciseDraft,
    ExerciseType,
    GenerationOptions,
    Solution,
    StructuredLesson,
)
from statlab.utils.prompt_loader import format_prompt, load_prompt

from .parsing import (
    extract_image_base64,
    find_function_call,
    parse_evaluation,
    parse_exercise_args,
    parse_structured_lesson,
    response_text,
)


logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Request builders
# -----------------------------------------------------------------------------

def exercise_declaration(template: dict) -> genai_types.FunctionDeclaration:
    """Function declaration whose parameters mirror the ExerciseDraft schema."""
    string = genai_types.Type.STRING
    solution_fields = Solution.model_fields
    return genai_types.FunctionDeclaration(
        name=template["function"]["name"],
        description=template["function"]["description"],
        parameters=genai_types.Schema(
            type=genai_types.Type.OBJECT,
            properties={
                "problem_statement": genai_types.Schema(
                    type=string,
                    description="The full problem statement in markdown, including any data needed.",
                ),
                "difficulty": genai_types.Schema(
                    type=string,
                    enum=[d.value for d in Difficulty],
                    description="Difficulty level of the exercise.",
                ),
                "type": genai_types.Schema(
                    type=string,
                    enum=[t.value for t in ExerciseType],
                    description="Category of the exercise.",
                ),
                "solution": genai_types.Schema(
                    type=genai_types.Type.OBJECT,
                    description="Detailed markdown solution split into three parts.",
                    properties={
                        "hint": genai_types.Schema(
                            type=string,
                            description="A subtle hint that helps the student start without giving the answer away.",
                        ),
                        "starting_guide": genai_types.Schema(
                            type=string,
                            description="How to approach the problem and what the exercise is after.",
                        ),
                        "full_solution": genai_types.Schema(
                            type=string,
                            description="The complete, commented, step-by-step solution.",
                        ),
                    },
                    required=list(solution_fields),
                ),
            },
            required=["problem_statement", "difficulty", "type", "solution"],
        ),
    )


def build_exercise_prompt(
    template: dict,
    lesson_title: str,
    existing_exercises: Sequence[Exercise | ExerciseDraft],
    instruction: str,
) -> str:
    """User message for the exercise chat, summarising what already exists."""
    if existing_exercises:
        preview_chars = int(template.get("preview_chars", 100))
        lines = [template["existing_header"]]
        for number, exercise in enumerate(existing_exercises, 1):
            lines.append(template["existing_item"].format(
                number=number,
                type=exercise.type.value,
                difficulty=exercise.difficulty.value,
                preview=exercise.problem_statement[:preview_chars],
            ))
        lines.append("")
        lines.append(template["existing_footer"])
        existing_section = "\n" + "\n".join(lines)
    else:
        existing_section = template["first_exercise"]

    return format_prompt(
        template["user_template"],
        lesson_title=lesson_title,
        existing_section=existing_section,
        instruction=instruction,
    )


def build_material_prompt(template: dict, topic: str, options: GenerationOptions) -> str:
    focus = options.focus.strip()
    return format_prompt(
        template["user_template"],
        topic=topic,
        length=template["lengths"][options.length],
        level=template["levels"][options.level],
        focus=template["focus_on"].format(focus=focus).strip() if focus else template["focus_off"],
        emojis=template["emojis_on"] if options.use_emojis else template["emojis_off"],
    )


# -----------------------------------------------------------------------------
# Gateway
# -----------------------------------------------------------------------------

class GeminiGateway:
    """Async Gemini operations used by the classroom controller."""

    def __init__(
        self,
        client: Optional[Any] = None,
        settings: Optional[Settings] = None,
        prompts_dir: Optional[Path] = None,
    ):
        """
        Args:
            client: A google.genai.Client (built from GEMINI_API_KEY if omitted)
            settings: Model configuration (default: load_settings())
            prompts_dir: Optional custom prompts directory
        """
        self.settings = settings or load_settings()
        self.client = client or genai.Client(api_key=self.settings.require_api_key())

        self.exercise_prompt = load_prompt("exercise", prompts_dir)
        self.evaluate_prompt = load_prompt("evaluate", prompts_dir)
        self.material_prompt = load_prompt("material", prompts_dir)
        self.tutor_prompt = load_prompt("tutor", prompts_dir)
        self.achievement_prompt = load_prompt("achievements", prompts_dir)
        self._exercise_tool = genai_types.Tool(
            function_declarations=[exercise_declaration(self.exercise_prompt)]
        )

    # -------------------------------------------------------------------------
    # Exercise authoring
    # -------------------------------------------------------------------------

    def create_exercise_chat(self, lesson_title: str) -> Any:
        """New exercise-authoring chat bound to one lesson."""
        return self.client.aio.chats.create(
            model=self.settings.exercise_model,
            config=genai_types.GenerateContentConfig(
                system_instruction=format_prompt(
                    self.exercise_prompt["system"], lesson_title=lesson_title
                ),
                temperature=self.exercise_prompt["meta"].get("temperature"),
                tools=[self._exercise_tool],
            ),
        )

    async def generate_exercise(
        self,
        chat: Any,
        lesson_title: str,
        existing_exercises: Sequence[Exercise | ExerciseDraft],
        instruction: str,
    ) -> ExerciseDraft | str:
        """
        Ask the lesson chat for a new exercise.

        Returns:
            ExerciseDraft from a well-formed tool call, the model's text when
            it replied without calling the tool, or an error message.
        """
        errors = self.exercise_prompt["errors"]
        prompt = build_exercise_prompt(
            self.exercise_prompt, lesson_title, existing_exercises, instruction
        )
        try:
            response = await chat.send_message(prompt)
        except Exception as e:
            logger.error(f"Error generating exercise for '{lesson_title}': {e}")
            return errors["failed"]

        call = find_function_call(response, self.exercise_prompt["function"]["name"])
        if call is not None:
            draft = parse_exercise_args(call.args)
            return draft if draft is not None else errors["malformed"]

        return response_text(response) or errors["failed"]

    # -------------------------------------------------------------------------
    # Answer evaluation
    # -------------------------------------------------------------------------

    async def evaluate_answer(self, student_answer: str, solution: Solution) -> Evaluation:
        errors = self.evaluate_prompt["errors"]
        prompt = format_prompt(
            self.evaluate_prompt["user_template"],
            full_solution=solution.full_solution,
            student_answer=student_answer,
        )
        try:
            response = await self.client.aio.models.generate_content(
                model=self.settings.fast_model,
                contents=prompt,
                config=genai_types.GenerateContentConfig(
                    temperature=self.evaluate_prompt["meta"].get("temperature"),
                ),
            )
        except Exception as e:
            logger.error(f"Error evaluating answer: {e}")
            return Evaluation(result=EvaluationResult.EVALUATION_ERROR, feedback=errors["failed"])

        return parse_evaluation(response_text(response), fallback_feedback=errors["unrecognized"])

    # -------------------------------------------------------------------------
    # Lesson material
    # -------------------------------------------------------------------------

    async def generate_lesson_material(
        self, topic: str, options: GenerationOptions
    ) -> StructuredLesson | str:
        errors = self.material_prompt["errors"]
        try:
            response = await self.client.aio.models.generate_content(
                model=self.settings.exercise_model,
                contents=build_material_prompt(self.material_prompt, topic, options),
                config=genai_types.GenerateContentConfig(
                    temperature=self.material_prompt["meta"].get("temperature"),
                    response_mime_type="application/json",
                    response_schema=StructuredLesson,
                ),
            )
        except Exception as e:
            logger.error(f"Error generating lesson material for '{topic}': {e}")
            return errors["failed"]

        lesson = parse_structured_lesson(response_text(response))
        return lesson if lesson is not None else errors["invalid"]

    # -------------------------------------------------------------------------
    # Achievement artifacts
    # -------------------------------------------------------------------------

    async def generate_achievement_artifact(self, request: ArtifactRequest) -> ArtifactResult | str:
        errors = self.achievement_prompt["errors"]
        parts = []
        if request.input_image_base64:
            try:
                image_bytes = base64.b64decode(request.input_image_base64, validate=True)
            except (binascii.Error, ValueError) as e:
                logger.error(f"Input image for milestone {request.milestone} is not valid base64: {e}")
                return errors["failed"]
            parts.append(genai_types.Part.from_bytes(
                data=image_bytes,
                mime_type=request.input_image_mime_type or "image/png",
            ))
        parts.append(genai_types.Part.from_text(text=request.prompt))

        try:
            response = await self.client.aio.models.generate_content(
                model=self.settings.image_model,
                contents=parts,
                config=genai_types.GenerateContentConfig(response_modalities=["IMAGE"]),
            )
        except Exception as e:
            logger.error(f"Error generating artifact for milestone {request.milestone}: {e}")
            return errors["failed"]

        image = extract_image_base64(response)
        if not image:
            logger.error(f"No image in artifact response for milestone {request.milestone}")
            return errors["no_image"]

        return ArtifactResult(
            title=request.title,
            narrative=request.narrative,
            content_base64=image,
        )

    # -------------------------------------------------------------------------
    # Tutoring
    # -------------------------------------------------------------------------

    def create_tutor_chat(self) -> Any:
        return self.client.aio.chats.create(
            model=self.settings.fast_model,
            config=genai_types.GenerateContentConfig(
                system_instruction=self.tutor_prompt["persona"].strip(),
            ),
        )

    async def ask_tutor(self, chat: Any, message: str) -> str:
        try:
            response = await chat.send_message(message)
        except Exception as e:
            logger.error(f"Error in tutor chat: {e}")
            return self.tutor_prompt["errors"]["chat"]
        return response_text(response) or self.tutor_prompt["errors"]["chat"]

    async def answer_question_about_lesson(self, material: str, question: str) -> str:
        prompt = format_prompt(
            self.tutor_prompt["lesson_qa_template"],
            persona=self.tutor_prompt["persona"].strip(),
            material=material,
            question=question,
        )
        try:
            response = await self.client.aio.models.generate_content(
                model=self.settings.fast_model,
                contents=prompt,
            )
        except Exception as e:
            logger.error(f"Error answering lesson question: {e}")
            return self.tutor_prompt["errors"]["lesson_qa"]
        return response_text(response) or self.tutor_prompt["errors"]["lesson_qa"]

"""
GeminiGateway tests against a fake google-genai client.

Every operation must turn network faults and malformed responses into its
error value instead of raising.
"""

import asyncio
import base64
import json

from statlab.schemas import (
    ArtifactRequest,
    ArtifactResult,
    EvaluationResult,
    ExerciseDraft,
    GenerationOptions,
    StructuredLesson,
)

from conftest import (
    function_call_response,
    image_response,
    make_exercise,
    make_solution,
    text_response,
)


EXERCISE_ARGS = {
    "problem_statement": "Find the median of 3, 1, 2.",
    "difficulty": "Easy",
    "type": "Calculation",
    "solution": {
        "hint": "Sort first.",
        "starting_guide": "Order the values.",
        "full_solution": "The median is 2.",
    },
}

MATERIAL = {
    "introduction": "<p>Intro</p>",
    "theory": "<p>Theory</p>",
    "examples": "<p>Examples</p>",
    "reflection_questions": "<ul><li>Why?</li></ul>",
}


def artifact_request(**kwargs) -> ArtifactRequest:
    fields = {
        "milestone": 10,
        "title": "Sketched Avatar",
        "narrative": "A first sketch.",
        "prompt": "Draw a sketch.",
    }
    fields.update(kwargs)
    return ArtifactRequest(**fields)


class TestGenerateExercise:
    """Test exercise generation through a lesson chat."""

    def test_tool_call_becomes_draft(self, gateway, genai_client):
        genai_client.responses.append(
            function_call_response("generate_statistics_exercise", EXERCISE_ARGS)
        )
        chat = gateway.create_exercise_chat("Measures of center")
        result = asyncio.run(gateway.generate_exercise(chat, "Measures of center", [], "an easy one"))

        assert isinstance(result, ExerciseDraft)
        assert result.solution.full_solution == "The median is 2."
        assert chat.model == "test-pro"
        assert "Measures of center" in chat.config.system_instruction
        assert "an easy one" in chat.sent[0]

    def test_prompt_lists_existing_exercises(self, gateway, genai_client):
        genai_client.responses.append(
            function_call_response("generate_statistics_exercise", EXERCISE_ARGS)
        )
        chat = gateway.create_exercise_chat("Mean")
        existing = [make_exercise("e1", statement="Compute the mean of 4, 5, 6.")]
        asyncio.run(gateway.generate_exercise(chat, "Mean", existing, "another"))
        assert "Compute the mean of 4, 5, 6." in chat.sent[0]

    def test_malformed_tool_call(self, gateway, genai_client):
        args = {**EXERCISE_ARGS, "solution": {"hint": "only a hint"}}
        genai_client.responses.append(function_call_response("generate_statistics_exercise", args))
        chat = gateway.create_exercise_chat("Mean")
        result = asyncio.run(gateway.generate_exercise(chat, "Mean", [], "x"))
        assert result == gateway.exercise_prompt["errors"]["malformed"]

    def test_text_reply_passed_through(self, gateway, genai_client):
        genai_client.responses.append(text_response("Which topic should it cover?"))
        chat = gateway.create_exercise_chat("Mean")
        result = asyncio.run(gateway.generate_exercise(chat, "Mean", [], "x"))
        assert result == "Which topic should it cover?"

    def test_send_failure(self, gateway, genai_client):
        genai_client.responses.append(ConnectionError("offline"))
        chat = gateway.create_exercise_chat("Mean")
        result = asyncio.run(gateway.generate_exercise(chat, "Mean", [], "x"))
        assert result == gateway.exercise_prompt["errors"]["failed"]


class TestEvaluateAnswer:
    """Test answer evaluation."""

    def test_correct(self, gateway, genai_client):
        genai_client.responses.append(text_response("Correct\nNicely done."))
        evaluation = asyncio.run(gateway.evaluate_answer("2", make_solution()))
        assert evaluation.result is EvaluationResult.CORRECT
        assert evaluation.feedback == "Nicely done."
        call = genai_client.generate_calls[0]
        assert call["model"] == "test-flash"
        assert "Full solution" in call["contents"]

    def test_partially_correct(self, gateway, genai_client):
        genai_client.responses.append(text_response("Partially Correct\nAlmost."))
        evaluation = asyncio.run(gateway.evaluate_answer("2", make_solution()))
        assert evaluation.result is EvaluationResult.PARTIALLY_CORRECT

    def test_unrecognized_label(self, gateway, genai_client):
        genai_client.responses.append(text_response("Maybe"))
        evaluation = asyncio.run(gateway.evaluate_answer("2", make_solution()))
        assert evaluation.result is EvaluationResult.EVALUATION_ERROR
        assert evaluation.feedback == gateway.evaluate_prompt["errors"]["unrecognized"]

    def test_request_failure(self, gateway, genai_client):
        genai_client.responses.append(TimeoutError("slow"))
        evaluation = asyncio.run(gateway.evaluate_answer("2", make_solution()))
        assert evaluation.result is EvaluationResult.EVALUATION_ERROR
        assert evaluation.feedback == gateway.evaluate_prompt["errors"]["failed"]


class TestLessonMaterial:
    """Test structured lesson generation."""

    def test_valid_json(self, gateway, genai_client):
        genai_client.responses.append(text_response(json.dumps(MATERIAL)))
        options = GenerationOptions(focus="sports", length="short", level="beginner", use_emojis=False)
        result = asyncio.run(gateway.generate_lesson_material("Variance", options))

        assert isinstance(result, StructuredLesson)
        assert result.theory == "<p>Theory</p>"
        prompt = genai_client.generate_calls[0]["contents"]
        assert "Variance" in prompt
        assert "sports" in prompt

    def test_missing_section(self, gateway, genai_client):
        partial = {k: v for k, v in MATERIAL.items() if k != "examples"}
        genai_client.responses.append(text_response(json.dumps(partial)))
        result = asyncio.run(gateway.generate_lesson_material("Variance", GenerationOptions()))
        assert result == gateway.material_prompt["errors"]["invalid"]

    def test_not_json(self, gateway, genai_client):
        genai_client.responses.append(text_response("Here is your lesson!"))
        result = asyncio.run(gateway.generate_lesson_material("Variance", GenerationOptions()))
        assert result == gateway.material_prompt["errors"]["invalid"]

    def test_request_failure(self, gateway, genai_client):
        genai_client.responses.append(RuntimeError("quota"))
        result = asyncio.run(gateway.generate_lesson_material("Variance", GenerationOptions()))
        assert result == gateway.material_prompt["errors"]["failed"]


class TestAchievementArtifact:
    """Test image artifact generation."""

    def test_image_returned(self, gateway, genai_client):
        genai_client.responses.append(image_response(b"png-bytes"))
        result = asyncio.run(gateway.generate_achievement_artifact(artifact_request()))

        assert isinstance(result, ArtifactResult)
        assert base64.b64decode(result.content_base64) == b"png-bytes"
        assert result.title == "Sketched Avatar"
        call = genai_client.generate_calls[0]
        assert call["model"] == "test-image"
        assert len(call["contents"]) == 1

    def test_input_image_sent_first(self, gateway, genai_client):
        genai_client.responses.append(image_response(b"out"))
        request = artifact_request(
            input_image_base64=base64.b64encode(b"in").decode(),
            input_image_mime_type="image/jpeg",
        )
        asyncio.run(gateway.generate_achievement_artifact(request))
        contents = genai_client.generate_calls[0]["contents"]
        assert len(contents) == 2
        assert contents[0].inline_data.data == b"in"
        assert contents[1].text == "Draw a sketch."

    def test_no_image(self, gateway, genai_client):
        genai_client.responses.append(image_response(None))
        result = asyncio.run(gateway.generate_achievement_artifact(artifact_request()))
        assert result == "The model returned no image."

    def test_invalid_input_image(self, gateway, genai_client):
        request = artifact_request(input_image_base64="not base64!!", input_image_mime_type="image/png")
        result = asyncio.run(gateway.generate_achievement_artifact(request))
        assert result == gateway.achievement_prompt["errors"]["failed"]
        assert genai_client.generate_calls == []

    def test_request_failure(self, gateway, genai_client):
        genai_client.responses.append(ConnectionError("offline"))
        result = asyncio.run(gateway.generate_achievement_artifact(artifact_request()))
        assert result == gateway.achievement_prompt["errors"]["failed"]


class TestTutor:
    """Test the tutor chat and lesson Q&A."""

    def test_ask_tutor(self, gateway, genai_client):
        genai_client.responses.append(text_response("Hmph. The mean is the average."))
        chat = gateway.create_tutor_chat()
        reply = asyncio.run(gateway.ask_tutor(chat, "What is a mean?"))
        assert reply == "Hmph. The mean is the average."
        assert chat.sent == ["What is a mean?"]
        assert "Statistical Oracle" in chat.config.system_instruction

    def test_tutor_failure(self, gateway, genai_client):
        genai_client.responses.append(ConnectionError("offline"))
        chat = gateway.create_tutor_chat()
        assert asyncio.run(gateway.ask_tutor(chat, "hi")) == "Error. Try again."

    def test_tutor_empty_reply(self, gateway, genai_client):
        genai_client.responses.append(text_response(None))
        chat = gateway.create_tutor_chat()
        assert asyncio.run(gateway.ask_tutor(chat, "hi")) == "Error. Try again."

    def test_lesson_question(self, gateway, genai_client):
        genai_client.responses.append(text_response("Because it is squared."))
        answer = asyncio.run(gateway.answer_question_about_lesson("<p>Variance</p>", "Why positive?"))
        assert answer == "Because it is squared."
        prompt = genai_client.generate_calls[0]["contents"]
        assert "<p>Variance</p>" in prompt
        assert "Why positive?" in prompt

    def test_lesson_question_failure(self, gateway, genai_client):
        genai_client.responses.append(RuntimeError("boom"))
        answer = asyncio.run(gateway.answer_question_about_lesson("m", "q"))
        assert answer == gateway.tutor_prompt["errors"]["lesson_qa"]

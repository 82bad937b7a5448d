"""
Prompt loader tests, including checks on the shipped templates.
"""

import pytest

from statlab.utils.prompt_loader import (
    format_prompt,
    get_available_prompts,
    load_prompt,
)


class TestLoadPrompt:
    """Test loading YAML templates."""

    def test_shipped_prompts(self):
        assert get_available_prompts() == [
            "achievements",
            "evaluate",
            "exercise",
            "material",
            "tutor",
        ]

    @pytest.mark.parametrize("name", ["evaluate", "exercise", "material", "tutor", "achievements"])
    def test_shipped_prompts_have_errors(self, name):
        template = load_prompt(name)
        assert template["errors"]

    def test_custom_directory(self, tmp_path):
        (tmp_path / "hello.yaml").write_text("user_template: 'Hi {name}'\n", encoding="utf-8")
        template = load_prompt("hello", tmp_path)
        assert format_prompt(template["user_template"], name="Ana") == "Hi Ana"

    def test_missing_prompt(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_prompt("missing", tmp_path)

    def test_required_keys(self, tmp_path):
        (tmp_path / "partial.yaml").write_text("system: x\n", encoding="utf-8")
        with pytest.raises(KeyError):
            load_prompt("partial", tmp_path, required_keys=["system", "user_template"])

    def test_empty_file(self, tmp_path):
        (tmp_path / "empty.yaml").write_text("", encoding="utf-8")
        assert load_prompt("empty", tmp_path) == {}

    def test_empty_directory(self, tmp_path):
        assert get_available_prompts(tmp_path / "nowhere") == []


class TestShippedTemplates:
    """The shipped templates format with the placeholders the gateway passes."""

    def test_evaluate_template(self):
        template = load_prompt("evaluate")
        prompt = format_prompt(template["user_template"], full_solution="SOL", student_answer="ANS")
        assert "SOL" in prompt and "ANS" in prompt

    def test_tutor_greeting(self):
        assert load_prompt("tutor")["greeting"] == "Hello, what is your question?"

    def test_achievement_errors(self):
        errors = load_prompt("achievements")["errors"]
        assert errors["no_image"] == "The model returned no image."

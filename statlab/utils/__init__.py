"""StatLab utilities."""

from .prompt_loader import load_prompt, format_prompt, get_available_prompts

__all__ = ["load_prompt", "format_prompt", "get_available_prompts"]

"""Prompt template loader.

Loads Markdown prompt templates from the prompts/ directory and renders
them with Jinja2 variable substitution. Used by the task breakdown and
prompt optimizer routes.
"""

from __future__ import annotations

import re
from pathlib import Path

from jinja2 import BaseLoader, Environment

# Directory containing the .md prompt template files
_PROMPTS_DIR = Path(__file__).parent

# Opening fence with an optional language tag, and a closing fence
_LEADING_FENCE_RE = re.compile(r"^```[\w-]*[ \t]*\n?", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"\s*```$")


def render_template_text(template_text: str, **variables: object) -> str:
    """Render an already-loaded template string with Jinja2 variables."""
    # Default Undefined renders missing variables as empty strings
    env = Environment(loader=BaseLoader(), keep_trailing_newline=True)
    return env.from_string(template_text).render(**variables)


def render_prompt(template_name: str, **variables: object) -> str:
    """Load a prompt template and render it with Jinja2 variables.

    Args:
        template_name: Name of the template file (without .md extension).
                       Must correspond to a file in the prompts/ directory.
        **variables: Template variables to inject.

    Returns:
        The fully rendered prompt string.

    Raises:
        FileNotFoundError: If the template file does not exist.
    """
    path = _PROMPTS_DIR / f"{template_name}.md"
    if not path.exists():
        raise FileNotFoundError(f"Prompt template not found: {path}")
    return render_template_text(path.read_text(encoding="utf-8"), **variables)


def render_meta_prompt(user_prompt: str, template_path: Path | None = None) -> str:
    """Render the prompt-optimizer meta-prompt around ``user_prompt``.

    The template may reference the request as ``{{ user_request }}`` or
    ``{{ user_input }}``; both receive the stripped prompt.

    Raises:
        FileNotFoundError: If ``template_path`` is given and does not exist.
    """
    text = user_prompt.strip()
    if template_path is None:
        return render_prompt("optimize", user_request=text, user_input=text)
    if not template_path.is_file():
        raise FileNotFoundError(f"Prompt template not found: {template_path}")
    return render_template_text(
        template_path.read_text(encoding="utf-8"), user_request=text, user_input=text,
    )


def clean_model_output(text: str) -> str:
    """Strip surrounding whitespace and one enclosing code fence."""
    cleaned = text.strip()
    cleaned = _LEADING_FENCE_RE.sub("", cleaned, count=1)
    cleaned = _TRAILING_FENCE_RE.sub("", cleaned, count=1)
    return cleaned.strip()

"""Split a task into subtasks with the language model.

The model is asked for a JSON array of step titles. Its answers are not
always clean, so parsing falls back from strict JSON to the first bracketed
array in the text and finally to one step per line.
"""

from __future__ import annotations

import json
import logging
import re

from todochat.errors import SubtaskParseError
from todochat.prompts import clean_model_output, render_prompt

logger = logging.getLogger(__name__)

MIN_SUBTASKS = 3
MAX_SUBTASKS = 5

_ARRAY_RE = re.compile(r"\[[\s\S]*?\]")
# Quotes, commas and brackets left around an item
_EDGE_PUNCT_RE = re.compile(r"^[\"'\[,\s]+|[\"'\]\s,]+$")
_HEADER_LINE_RE = re.compile(r"^(```|Step|Task|JSON)", re.IGNORECASE)
_NUMBERING_RE = re.compile(r"^(?:\d+[.)]|[-•*])\s*")
_ONLY_BRACKETS_RE = re.compile(r"^[\[\],]+$")


def build_breakdown_prompt(task_title: str) -> str:
    """Render the prompt asking for 3-5 steps of ``task_title``."""
    return render_prompt("breakdown", task_title=task_title.strip())


def parse_subtasks(text: str) -> list[str]:
    """Extract between 3 and 5 subtask titles from a model answer.

    Returns:
        At most ``MAX_SUBTASKS`` cleaned titles, in the order given.

    Raises:
        SubtaskParseError: If no subtasks, or fewer than ``MIN_SUBTASKS``,
            could be recovered.
    """
    items = _json_items(clean_model_output(text))
    if items is None:
        logger.warning("Model answer is not a JSON array: %.200r", text)
        items = _json_items(_first_array(text).replace("```json", "").replace("```", ""))
    if items is None:
        items = _line_items(text)

    subtasks = [_clean_item(item) for item in items]
    subtasks = [s for s in subtasks if s]

    if not subtasks:
        raise SubtaskParseError("AI did not return valid subtasks. Please try again.")
    if len(subtasks) < MIN_SUBTASKS:
        raise SubtaskParseError(
            f"AI only returned {len(subtasks)} subtasks, expected "
            f"{MIN_SUBTASKS}-{MAX_SUBTASKS}"
        )
    return subtasks[:MAX_SUBTASKS]


def _json_items(text: str) -> list[str] | None:
    """Parse ``text`` (or the first array inside it) as a JSON list."""
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, list):
        inner = _first_array(text)
        if not inner or inner == text:
            return None
        return _json_items(inner)
    return [str(item) for item in parsed if isinstance(item, (str, int, float))]


def _first_array(text: str) -> str:
    match = _ARRAY_RE.search(text)
    return match.group(0).strip() if match else ""


def _line_items(text: str) -> list[str]:
    items = []
    for line in text.splitlines():
        line = line.strip()
        if not line or _HEADER_LINE_RE.match(line):
            continue
        line = _EDGE_PUNCT_RE.sub("", line)
        line = _NUMBERING_RE.sub("", line).strip()
        if len(line) > 3 and not _ONLY_BRACKETS_RE.match(line):
            items.append(line)
    return items[:MAX_SUBTASKS]


def _clean_item(item: str) -> str:
    return _EDGE_PUNCT_RE.sub("", item).replace('\\"', '"').strip()

import json
from typing import Any


def extract_json_blocks_from_text(text: str) -> list[str]:
    """Extract all fenced Markdown blocks from a text string."""

    lines = text.strip().split("\n")

    start_index: int | None = None

    matches: list[str] = []

    for i, line in enumerate(lines):
        if not line.startswith("```"):
            continue

        if start_index is None:
            start_index = i + 1
            continue

        matches.append("\n".join(lines[start_index:i]))
        start_index = None

    return matches


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse a JSON object from model output.

    The whole text is tried first. Models sometimes wrap their answer in a Markdown block
    despite being asked for bare JSON, so a single fenced block is accepted as well.

    Raises:
        ValueError: If the text does not hold exactly one JSON object.
    """

    try:
        parsed: Any = json.loads(text)  # pyright: ignore[reportAny]
    except json.JSONDecodeError:
        matches: list[str] = extract_json_blocks_from_text(text)

        if len(matches) != 1:
            msg = f"Text must be a JSON object or contain exactly one Markdown JSON block, found {len(matches)} blocks."
            raise ValueError(msg) from None

        try:
            parsed = json.loads(matches[0])
        except json.JSONDecodeError as e:
            msg = f"Markdown JSON block is not valid JSON: {e.msg}"
            raise ValueError(msg) from None

    if not isinstance(parsed, dict):
        msg = f"Expected a JSON object, received {type(parsed).__name__}."  # pyright: ignore[reportAny]
        raise ValueError(msg)

    return parsed  # pyright: ignore[reportUnknownVariableType]

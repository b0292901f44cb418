"""Text utilities for prompt sizing: token estimation and model ceilings."""

import math

CHARS_PER_TOKEN = 4

# Structural JSON text carries less information per character.
JSON_TOKEN_PENALTY = 1.2

STRUCTURAL_MARKERS = ("{", "[")

# Ordered: the first substring contained in the model name wins.
MODEL_TOKEN_LIMITS: tuple[tuple[str, int], ...] = (
    ("gpt-4o", 128_000),
    ("gpt-4.1", 128_000),
    ("gpt-4-turbo", 128_000),
    ("gpt-4-32k", 32_000),
    ("gpt-4", 8_000),
    ("gpt-3.5-turbo-16k", 16_000),
    ("gpt-3.5", 4_000),
)
DEFAULT_MODEL_TOKEN_LIMIT = 4_000


def has_structural_markers(text: str) -> bool:
    """Return True if *text* contains JSON object or array delimiters."""
    return any(marker in text for marker in STRUCTURAL_MARKERS)


def token_cost(char_count: int, structured: bool) -> int:
    """Estimate tokens for *char_count* characters of plain or structured text.

    Exposed separately from :func:`estimate_tokens` so callers that grow a
    buffer incrementally can size it without rescanning the whole string.
    """
    if char_count <= 0:
        return 0
    base = math.ceil(char_count / CHARS_PER_TOKEN)
    if not structured:
        return base
    # round() guards against float noise such as 5 * 1.2 == 6.000000000000001
    return math.ceil(round(base * JSON_TOKEN_PENALTY, 6))


def estimate_tokens(text: str) -> int:
    """Approximate the token cost of *text*.

    Uses ~4 characters per token, with a 1.2x penalty when the text contains
    ``{`` or ``[``.

    Returns:
        0 for an empty string, otherwise at least 1.
    """
    if not text:
        return 0
    return token_cost(len(text), has_structural_markers(text))


def get_model_token_limit(model: str) -> int:
    """Return the per-request input-token ceiling for a model name."""
    name = (model or "").lower()
    for needle, limit in MODEL_TOKEN_LIMITS:
        if needle in name:
            return limit
    return DEFAULT_MODEL_TOKEN_LIMIT


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```) if present."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = lines[1:]  # remove opening ```json
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        cleaned = "\n".join(lines)
    return cleaned

"""Small text helpers shared across modules."""

from typing import Tuple


def truncate_text(text: str, max_length: int) -> Tuple[str, bool]:
    """
    Keep at most ``max_length`` leading characters of ``text``.

    Returns:
        Tuple of (possibly truncated text, whether truncation happened)
    """
    if text is None:
        return "", False
    if len(text) <= max_length:
        return text, False
    return text[:max_length], True


def shorten_for_log(text: str, max_length: int = 100) -> str:
    """Shorten text for log lines, marking the cut with an ellipsis."""
    if not text or len(text) <= max_length:
        return text
    return f"{text[:max_length]}..."

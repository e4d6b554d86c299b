"""Retry delay policy for vector index writes."""


def backoff_delay(attempt: int, base: float = 2.0) -> float:
    """
    Delay before the given retry.

    Args:
        attempt: Retry number, starting at 1 for the first retry
        base: Delay before the first retry, in seconds

    Returns:
        ``base * 2 ** (attempt - 1)`` seconds (2s, 4s, 8s ... for base 2)
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    return base * (2 ** (attempt - 1))

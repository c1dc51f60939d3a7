"""
Reconnect backoff.

Exponential delay between reconnection attempts. Capping the number of
attempts is the connection's job; the delay itself is uncapped.
"""

from __future__ import annotations


def backoff_delay(attempt: int, base_delay: float) -> float:
    """
    Delay before reconnect ``attempt`` (1-indexed): ``base_delay * 2^(attempt - 1)``.

    Example:
        >>> [backoff_delay(n, 1000) for n in range(1, 6)]
        [1000, 2000, 4000, 8000, 16000]
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    return base_delay * (2 ** (attempt - 1))

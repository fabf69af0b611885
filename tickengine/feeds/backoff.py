"""Reconnection backoff for the feed client."""


class LinearBackoff:
    """
    Linear backoff with a bounded number of attempts.

    The n-th delay is base_seconds * n. Once max_attempts delays have
    been handed out the budget is exhausted until reset().
    """

    def __init__(self, base_seconds: float = 1.0, max_attempts: int = 5):
        self.base_seconds = base_seconds
        self.max_attempts = max_attempts
        self._attempts = 0

    @property
    def attempts(self) -> int:
        """Number of delays handed out since the last reset."""
        return self._attempts

    @property
    def exhausted(self) -> bool:
        """True once every attempt in the budget has been used."""
        return self._attempts >= self.max_attempts

    def next_delay(self) -> float:
        """Get the next delay and count the attempt."""
        if self.exhausted:
            raise RuntimeError("Backoff budget exhausted")
        self._attempts += 1
        return self.base_seconds * self._attempts

    def reset(self) -> None:
        """Reset attempt counter."""
        self._attempts = 0

"""Exponential backoff calculator for gateway restarts."""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Exponential backoff calculator.

    The delay formula is:
        delay = min(base * (multiplier ^ attempt), max_delay)

    Attributes:
        base: Base delay in seconds for the first restart.
        max_delay: Maximum delay in seconds.
        multiplier: Factor to multiply the delay by for each attempt.
    """

    base: float = 1.0
    max_delay: float = 60.0
    multiplier: float = 2.0

    def delay(self, attempt: int) -> float:
        """Calculate the delay for a given attempt number.

        Args:
            attempt: Restarts already observed (0 for the first restart).

        Returns:
            The delay in seconds before the next launch.
        """
        try:
            exponential_delay = self.base * (self.multiplier**attempt)
        except OverflowError:
            return self.max_delay

        return min(exponential_delay, self.max_delay)

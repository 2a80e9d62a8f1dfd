"""
Retry Policy Model
Per-destination retry settings for forwarding attempts
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry policy configuration

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        initial_delay_ms: Delay before the first retry
        backoff_factor: Multiplier applied per subsequent retry
        max_delay_ms: Cap on any single delay
    """

    max_retries: int = 3
    initial_delay_ms: float = 100
    backoff_factor: float = 2
    max_delay_ms: float = 10000

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("retry delays must be >= 0")
        if self.backoff_factor <= 0:
            raise ValueError("backoff_factor must be positive")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RetryPolicy":
        """
        Build a policy from its stored camelCase JSON form

        Missing keys take the default values.

        Raises:
            ValueError: If a value is not numeric or out of range
        """
        defaults = cls()
        try:
            return cls(
                max_retries=int(data.get("maxRetries", defaults.max_retries)),
                initial_delay_ms=float(data.get("initialDelayMs", defaults.initial_delay_ms)),
                backoff_factor=float(data.get("backoffFactor", defaults.backoff_factor)),
                max_delay_ms=float(data.get("maxDelayMs", defaults.max_delay_ms)),
            )
        except (TypeError, AttributeError) as e:
            raise ValueError(f"Invalid retry policy: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            "maxRetries": self.max_retries,
            "initialDelayMs": self.initial_delay_ms,
            "backoffFactor": self.backoff_factor,
            "maxDelayMs": self.max_delay_ms,
        }


DEFAULT_RETRY_POLICY = RetryPolicy()

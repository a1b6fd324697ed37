"""
Entropy sources for candle auction finalization.

The engine asks an EntropySource for one random integer, keyed by the tick
at which the Ending period closed. The value must not be predictable by
anybody who could still bid, so the engine only asks once the safety delay
(rf_delay) past that reference tick has elapsed.

Two sources are provided:
1. HashEntropySource: Keccak-256 over a seed and the reference tick.
   Deterministic, which makes auctions reproducible in simulations.
2. BeaconEntropySource: values published tick by tick by an external
   beacon (VRF output, drand round, block hash). Raises RandomnessNotReady
   until a beacon value past the reference tick has been published.
"""

from typing import Dict, Optional, Protocol, runtime_checkable

from candle.crypto import keccak256
from candle.core.errors import RandomnessNotReady
from candle.utils.logger import get_logger

logger = get_logger("entropy")


# Domain separator for auction randomness
DOMAIN_CANDLE_ENTROPY = b"candle.entropy.v1"


@runtime_checkable
class EntropySource(Protocol):
    """Supplies randomness that nobody could know before reference_time."""

    def random(self, reference_time: int) -> int:
        """
        Return a non-negative random integer.

        Raises:
            RandomnessNotReady: randomness for reference_time not produced yet
        """
        ...


class HashEntropySource:
    """
    Deterministic entropy: keccak256(domain || seed || reference_time).

    Good for tests and simulations; in production the seed must come from
    something bidders cannot influence.
    """

    def __init__(self, seed: bytes = b""):
        self.seed = seed

    def random(self, reference_time: int) -> int:
        if reference_time < 0:
            raise ValueError(f"reference_time must be >= 0, got {reference_time}")
        digest = keccak256(
            DOMAIN_CANDLE_ENTROPY + self.seed + reference_time.to_bytes(8, "big")
        )
        return int.from_bytes(digest, "big")


class BeaconEntropySource:
    """
    Randomness published by an external beacon, one value per tick.

    The value handed out for a reference tick is the first beacon output
    published at least `delay` ticks after it, mixed with the reference
    tick so different auctions closing at different ticks do not share a
    random value.
    """

    def __init__(self, delay: int = 1):
        if delay < 1:
            raise ValueError(f"delay must be >= 1, got {delay}")
        self.delay = delay
        self.outputs: Dict[int, bytes] = {}

    def publish(self, tick: int, output: bytes) -> None:
        """Record the beacon output for a tick. Outputs are write-once."""
        if tick in self.outputs:
            raise ValueError(f"Beacon output for tick {tick} already published")
        if not output:
            raise ValueError("Beacon output must not be empty")
        self.outputs[tick] = output
        logger.debug(f"Beacon output published for tick {tick}")

    def latest_tick(self) -> Optional[int]:
        return max(self.outputs) if self.outputs else None

    def random(self, reference_time: int) -> int:
        eligible = [t for t in self.outputs if t >= reference_time + self.delay]
        if not eligible:
            latest = self.latest_tick()
            logger.warning(
                f"No beacon output at or after tick {reference_time + self.delay} "
                f"(latest: {latest})"
            )
            raise RandomnessNotReady(
                current_time=latest if latest is not None else reference_time,
                ready_at=reference_time + self.delay,
            )
        tick = min(eligible)
        digest = keccak256(
            DOMAIN_CANDLE_ENTROPY + self.outputs[tick] + reference_time.to_bytes(8, "big")
        )
        return int.from_bytes(digest, "big")


class FixedEntropySource:
    """Always returns the same value. Useful for replaying a known outcome."""

    def __init__(self, value: int):
        if value < 0:
            raise ValueError(f"value must be >= 0, got {value}")
        self.value = value
        self.calls = 0

    def random(self, reference_time: int) -> int:
        self.calls += 1
        return self.value


__all__ = [
    "EntropySource",
    "HashEntropySource",
    "BeaconEntropySource",
    "FixedEntropySource",
    "DOMAIN_CANDLE_ENTROPY",
]

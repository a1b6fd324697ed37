"""
Sample History - who was winning at each tick of the Ending period.

Every tick of the Ending period is a candidate closing instant ("sample").
The history holds one slot per sample spanned so far; slot i records the
leading bidder and amount as of sample i. Samples in which nobody bid are
filled by carrying the previous slot forward, so leading amounts never
decrease from one sample to the next.

Slots are only written for the current sample (and any later ones already
materialized). A sample whose tick has elapsed is never rewritten.
"""

from typing import Iterator, List, Optional, Tuple

from candle.core.errors import OutOfOrderCall

# (leading_bidder, leading_amount)
Leader = Tuple[Optional[str], int]

NO_LEADER: Leader = (None, 0)


class SampleHistory:
    """Index-addressable per-sample leading bid record."""

    def __init__(self, sample_count: int):
        if sample_count <= 0:
            raise ValueError(f"sample_count must be > 0, got {sample_count}")
        self.sample_count = sample_count
        self._slots: List[Leader] = []

    @property
    def materialized(self) -> int:
        """Number of samples written so far."""
        return len(self._slots)

    def _check_range(self, sample: int) -> None:
        if not 0 <= sample < self.sample_count:
            raise ValueError(f"Sample {sample} outside [0, {self.sample_count})")

    def leader_at(self, sample: int) -> Leader:
        """
        Leading bid as of a sample.

        Samples beyond the last written one carry the last written value.
        """
        self._check_range(sample)
        if sample < len(self._slots):
            return self._slots[sample]
        if self._slots:
            return self._slots[-1]
        return NO_LEADER

    def latest(self) -> Leader:
        return self._slots[-1] if self._slots else NO_LEADER

    def check_record(self, sample: int) -> None:
        """Raise if sample may not be written anymore."""
        self._check_range(sample)
        last = len(self._slots) - 1
        if sample < last:
            raise OutOfOrderCall(sample, last)

    def record(self, sample: int, bidder: str, amount: int) -> bool:
        """
        Register a bidder's new balance at a sample.

        The bidder becomes the leader of this and every later materialized
        sample if amount strictly exceeds the amount leading there.

        Returns:
            True if the leader changed
        """
        self.check_record(sample)

        carry = self.latest()
        while len(self._slots) <= sample:
            self._slots.append(carry)

        if amount <= self._slots[sample][1]:
            return False

        for i in range(sample, len(self._slots)):
            self._slots[i] = (bidder, amount)
        return True

    def snapshot(self) -> List[Leader]:
        return list(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[Leader]:
        return iter(self._slots)

"""
Auction configuration and engine settings.

AuctionConfig describes one auction and is immutable after creation.
EngineSettings holds the operational parameters shared by every auction
(entropy safety delay, balance ceiling, logging) and can be loaded from the
environment or a .env file.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from candle.core.errors import InvalidConfiguration


# =============================================================================
# Constants
# =============================================================================

# Ticks to wait after Ending closes before randomness may be consumed
DEFAULT_RF_DELAY = 2

# Balances are u128 amounts
MAX_BALANCE = 2**128 - 1

# Subject codes occupy one byte
MAX_SUBJECT_CODE = 255


# =============================================================================
# Subject
# =============================================================================


class SubjectKind(IntEnum):
    """What is being auctioned."""
    ASSET_COLLECTION = 0   # Approval over a collection of assets
    NAMED_DOMAIN = 1       # Ownership of a registered name
    RESERVED = 2           # Any other code, no reward logic yet


@dataclass(frozen=True)
class Subject:
    """
    Tagged subject variant: AssetCollection | NamedDomain | Reserved(n).

    The raw code is kept so reserved subjects stay distinguishable.
    """
    code: int = 0

    def __post_init__(self):
        if not isinstance(self.code, int) or not 0 <= self.code <= MAX_SUBJECT_CODE:
            raise InvalidConfiguration(
                f"Subject code must be in [0, {MAX_SUBJECT_CODE}], got {self.code!r}"
            )

    @property
    def kind(self) -> SubjectKind:
        if self.code == SubjectKind.ASSET_COLLECTION:
            return SubjectKind.ASSET_COLLECTION
        if self.code == SubjectKind.NAMED_DOMAIN:
            return SubjectKind.NAMED_DOMAIN
        return SubjectKind.RESERVED

    @classmethod
    def asset_collection(cls) -> "Subject":
        return cls(SubjectKind.ASSET_COLLECTION)

    @classmethod
    def named_domain(cls) -> "Subject":
        return cls(SubjectKind.NAMED_DOMAIN)

    @classmethod
    def reserved(cls, code: int) -> "Subject":
        if code in (SubjectKind.ASSET_COLLECTION, SubjectKind.NAMED_DOMAIN):
            raise InvalidConfiguration(f"Subject code {code} is not reserved")
        return cls(code)

    def __str__(self) -> str:
        if self.kind == SubjectKind.RESERVED:
            return f"Reserved({self.code})"
        return self.kind.name


@dataclass(frozen=True)
class SubjectDescriptor:
    """Everything a reward delegate needs to know about the prize."""
    subject: Subject
    reward_reference: str
    domain: Optional[str] = None

    @property
    def kind(self) -> SubjectKind:
        return self.subject.kind


# =============================================================================
# Auction Configuration
# =============================================================================


@dataclass(frozen=True)
class AuctionConfig:
    """
    Immutable parameters of a single candle auction.

    All durations are in ticks (blocks). The Ending period starts right
    after the Opening period:

        [start_time ............ ending_start ............ ending_end)
        |        opening         |          ending         |
    """
    start_time: int
    opening_duration: int
    ending_duration: int
    owner: str
    reward_delegate_reference: str
    subject: Subject = field(default_factory=Subject)
    domain: Optional[str] = None

    def __post_init__(self):
        for name in ("start_time", "opening_duration", "ending_duration"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise InvalidConfiguration(f"{name} must be int, got {type(value).__name__}")

        if self.start_time < 0:
            raise InvalidConfiguration(f"start_time must be >= 0, got {self.start_time}")
        if self.opening_duration <= 0:
            raise InvalidConfiguration(
                f"opening_duration must be > 0, got {self.opening_duration}"
            )
        if self.ending_duration <= 0:
            raise InvalidConfiguration(
                f"ending_duration must be > 0, got {self.ending_duration}"
            )
        if not self.owner:
            raise InvalidConfiguration("owner must be specified")
        if not self.reward_delegate_reference:
            raise InvalidConfiguration("reward_delegate_reference must be specified")
        if not isinstance(self.subject, Subject):
            raise InvalidConfiguration(f"subject must be Subject, got {type(self.subject).__name__}")
        if self.subject.kind == SubjectKind.NAMED_DOMAIN and not self.domain:
            raise InvalidConfiguration("Domain name put up for auction must be specified")

    @classmethod
    def schedule(
        cls,
        now: int,
        opening_duration: int,
        ending_duration: int,
        owner: str,
        reward_delegate_reference: str,
        start_time: Optional[int] = None,
        subject: Optional[Subject] = None,
        domain: Optional[str] = None,
    ) -> "AuctionConfig":
        """
        Create a config for an auction starting in the future.

        Args:
            now: Current tick
            start_time: First Opening tick. Defaults to the next tick.

        Raises:
            InvalidConfiguration: start_time is not after now
        """
        start = now + 1 if start_time is None else start_time
        if start <= now:
            raise InvalidConfiguration(
                f"Auction may only be scheduled for future ticks (start {start}, now {now})"
            )
        return cls(
            start_time=start,
            opening_duration=opening_duration,
            ending_duration=ending_duration,
            owner=owner,
            reward_delegate_reference=reward_delegate_reference,
            subject=subject if subject is not None else Subject(),
            domain=domain,
        )

    # =========================================================================
    # Derived boundaries
    # =========================================================================

    @property
    def ending_start(self) -> int:
        """First tick of the Ending period."""
        return self.start_time + self.opening_duration

    @property
    def ending_end(self) -> int:
        """First tick after the Ending period."""
        return self.ending_start + self.ending_duration

    @property
    def sample_count(self) -> int:
        """Number of candidate closing samples."""
        return self.ending_duration

    def descriptor(self) -> SubjectDescriptor:
        return SubjectDescriptor(
            subject=self.subject,
            reward_reference=self.reward_delegate_reference,
            domain=self.domain,
        )


# =============================================================================
# Engine Settings
# =============================================================================


@dataclass
class EngineSettings:
    """Operational parameters shared by all auctions."""

    rf_delay: int = DEFAULT_RF_DELAY        # Ticks after Ending before finalize
    max_balance: int = MAX_BALANCE          # Ceiling for any bidder's balance
    log_level: int = logging.INFO
    log_dir: Optional[Path] = None          # None = console only

    def __post_init__(self):
        if self.rf_delay < 0:
            raise InvalidConfiguration(f"rf_delay must be >= 0, got {self.rf_delay}")
        if self.max_balance <= 0:
            raise InvalidConfiguration(f"max_balance must be > 0, got {self.max_balance}")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw, 0)
    except ValueError as e:
        raise InvalidConfiguration(f"{name} must be an integer, got {raw!r}") from e


def _env_log_level(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    level = logging.getLevelName(raw.upper())
    if not isinstance(level, int):
        raise InvalidConfiguration(f"{name} must be a logging level name, got {raw!r}")
    return level


def load_settings(env_file: Optional[str] = None) -> EngineSettings:
    """
    Load engine settings from the environment.

    Reads CANDLE_RF_DELAY, CANDLE_MAX_BALANCE, CANDLE_LOG_LEVEL and
    CANDLE_LOG_DIR. Values from env_file (or a .env in the working
    directory) never override variables that are already set.

    Args:
        env_file: Optional path to a dotenv file

    Returns:
        EngineSettings instance
    """
    dotenv_path = env_file or find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path)

    log_dir = os.environ.get("CANDLE_LOG_DIR")
    return EngineSettings(
        rf_delay=_env_int("CANDLE_RF_DELAY", DEFAULT_RF_DELAY),
        max_balance=_env_int("CANDLE_MAX_BALANCE", MAX_BALANCE),
        log_level=_env_log_level("CANDLE_LOG_LEVEL", logging.INFO),
        log_dir=Path(log_dir) if log_dir else None,
    )

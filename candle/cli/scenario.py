"""
Scenario files - scripted auctions for the command line.

A scenario is a JSON document describing one auction and the calls made
against it, in order:

    {
        "auction": {"start_time": 1, "opening_duration": 5,
                    "ending_duration": 5, "owner": "carol"},
        "rf_delay": 2,
        "entropy": {"seed": "demo"},
        "steps": [
            {"action": "bid", "who": "alice", "amount": 100, "at": 1},
            {"action": "finalize", "at": 13},
            {"action": "payout", "who": "alice", "at": 14}
        ]
    }
"""

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, model_validator

from candle.crypto import derive_account
from candle.core.auction import CandleAuction, PayoutReceipt, WinnerRecord
from candle.core.config import (
    AuctionConfig,
    EngineSettings,
    Subject,
    SubjectKind,
)
from candle.core.entropy import FixedEntropySource, HashEntropySource
from candle.core.errors import AuctionError, InvalidConfiguration
from candle.core.reward import (
    CollectionRewardDelegate,
    DomainRewardDelegate,
    NameRegistry,
    RewardRouter,
)

# Account holding auctioned names until payout
AUCTION_ACCOUNT = "auction"


# =============================================================================
# Schema
# =============================================================================


class AuctionSection(BaseModel):
    start_time: int
    opening_duration: int
    ending_duration: int
    owner: str
    reward_reference: str = "collection"
    subject: int = 0
    domain: Optional[str] = None


class EntropySection(BaseModel):
    seed: str = ""
    fixed: Optional[int] = Field(default=None, ge=0)


class Step(BaseModel):
    action: Literal["bid", "finalize", "payout", "status"]
    at: int
    who: Optional[str] = None
    amount: Optional[int] = None

    @model_validator(mode="after")
    def check_arguments(self) -> "Step":
        if self.action in ("bid", "payout") and not self.who:
            raise ValueError(f"'{self.action}' step requires 'who'")
        if self.action == "bid" and self.amount is None:
            raise ValueError("'bid' step requires 'amount'")
        return self


class Scenario(BaseModel):
    auction: AuctionSection
    rf_delay: Optional[int] = Field(default=None, ge=0)
    entropy: EntropySection = Field(default_factory=EntropySection)
    steps: List[Step] = Field(default_factory=list)


def load_scenario(path: Path) -> Scenario:
    """
    Parse and validate a scenario file.

    Raises:
        InvalidConfiguration: unreadable JSON or schema violation
    """
    try:
        data = json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidConfiguration(f"Cannot read scenario {path}: {e}") from e

    try:
        return Scenario.model_validate(data)
    except ValidationError as e:
        raise InvalidConfiguration(f"Invalid scenario {path}: {e}") from e


# =============================================================================
# Building and Running
# =============================================================================


def build_router(config: AuctionConfig) -> RewardRouter:
    """Reward delegates for the scenario's subject, backed by in-memory stores."""
    router = RewardRouter()
    router.register(
        SubjectKind.ASSET_COLLECTION,
        CollectionRewardDelegate(config.reward_delegate_reference),
    )

    registry = NameRegistry()
    if config.domain:
        registry.register(config.domain, AUCTION_ACCOUNT)
    router.register(SubjectKind.NAMED_DOMAIN, DomainRewardDelegate(registry, AUCTION_ACCOUNT))
    return router


def build_auction(
    scenario: Scenario,
    addresses: bool = False,
    settings: Optional[EngineSettings] = None,
) -> CandleAuction:
    """
    Instantiate the auction described by a scenario.

    Engine settings supply the balance ceiling and the default rf_delay;
    an rf_delay given in the scenario wins.
    """
    settings = settings or EngineSettings()
    if scenario.rf_delay is not None:
        settings = replace(settings, rf_delay=scenario.rf_delay)

    section = scenario.auction
    config = AuctionConfig(
        start_time=section.start_time,
        opening_duration=section.opening_duration,
        ending_duration=section.ending_duration,
        owner=resolve_identity(section.owner, addresses),
        reward_delegate_reference=section.reward_reference,
        subject=Subject(section.subject),
        domain=section.domain,
    )

    if scenario.entropy.fixed is not None:
        entropy = FixedEntropySource(scenario.entropy.fixed)
    else:
        entropy = HashEntropySource(scenario.entropy.seed.encode("utf-8"))

    return CandleAuction(
        config=config,
        entropy=entropy,
        reward=build_router(config),
        settings=settings,
    )


def resolve_identity(name: str, addresses: bool) -> str:
    return derive_account(name) if addresses else name


@dataclass
class StepOutcome:
    step: Step
    ok: bool
    result: Union[int, WinnerRecord, PayoutReceipt, tuple, None] = None
    error: Optional[AuctionError] = None

    def describe(self) -> str:
        step = self.step
        head = f"tick {step.at:>4} {step.action:<8}"
        if step.who:
            head += f" {step.who}"
        if not self.ok:
            return f"✗ {head}: {type(self.error).__name__}: {self.error}"

        if step.action == "bid":
            detail = f"+{step.amount} -> balance {self.result}"
        elif step.action == "finalize":
            record = self.result
            detail = (
                f"sample {record.winning_sample}, winner {record.winner or '-'}, "
                f"amount {record.winning_amount}"
            )
        elif step.action == "payout":
            receipt = self.result
            detail = f"refund {receipt.refund}, proceeds {receipt.proceeds}"
            if receipt.prize_granted:
                detail += ", prize granted"
        else:
            phase, (leader, amount) = self.result
            detail = f"{phase.name}, winning {leader or '-'} ({amount})"
        return f"✓ {head}: {detail}"


def run_step(auction: CandleAuction, step: Step, addresses: bool = False) -> StepOutcome:
    """Apply one scripted call. Auction errors are captured, not raised."""
    who = resolve_identity(step.who, addresses) if step.who else None
    try:
        if step.action == "bid":
            result = auction.place_bid(who, step.amount, step.at)
        elif step.action == "finalize":
            result = auction.finalize(step.at)
        elif step.action == "payout":
            result = auction.payout(who, step.at)
        else:
            result = (auction.get_status(step.at), auction.get_winning(step.at))
    except AuctionError as e:
        return StepOutcome(step=step, ok=False, error=e)
    return StepOutcome(step=step, ok=True, result=result)

"""
Reward delegates - hand the auctioned prize to the winner.

The auction engine never moves the prize itself. At payout it calls
`grant(winner, descriptor)` on a RewardDelegate and treats any exception as
a failed grant (the winner's claim stays open for a retry).

Subjects and their delegates:
- ASSET_COLLECTION: CollectionRewardDelegate grants the winner an approval
  over the collection held by the auction
- NAMED_DOMAIN: DomainRewardDelegate transfers a name in a NameRegistry
  from the auction account to the winner
- Reserved(n): no delegate until one is registered with the router
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

from candle.core.config import SubjectDescriptor, SubjectKind
from candle.utils.logger import get_logger

logger = get_logger("reward")


@runtime_checkable
class RewardDelegate(Protocol):
    """Capability that performs the prize transfer."""

    def grant(self, winner: str, descriptor: SubjectDescriptor) -> None:
        """Give the prize to winner. Raises on failure."""
        ...


# =============================================================================
# Asset Collection
# =============================================================================


class CollectionRewardDelegate:
    """
    Grants the winner an operator approval over an asset collection.

    `reachable` models the collection contract being callable; when it is
    not, grant raises ConnectionError and nothing is recorded.
    """

    def __init__(self, collection: str):
        self.collection = collection
        self.approvals: Dict[str, bool] = {}
        self.reachable = True

    def grant(self, winner: str, descriptor: SubjectDescriptor) -> None:
        if descriptor.kind != SubjectKind.ASSET_COLLECTION:
            raise ValueError(f"Cannot grant subject {descriptor.subject} as a collection")
        if descriptor.reward_reference != self.collection:
            raise ValueError(
                f"Collection mismatch: auction references {descriptor.reward_reference}, "
                f"delegate manages {self.collection}"
            )
        if not self.reachable:
            raise ConnectionError(f"Collection {self.collection} is not callable")

        self.approvals[winner] = True
        logger.info(f"Approved {winner} for collection {self.collection}")

    def is_approved(self, account: str) -> bool:
        return self.approvals.get(account, False)


# =============================================================================
# Named Domain
# =============================================================================


@dataclass
class NameRegistry:
    """Minimal name service: each name has exactly one owner."""
    owners: Dict[str, str] = field(default_factory=dict)
    history: List[Tuple[str, str, str]] = field(default_factory=list)

    def register(self, name: str, owner: str) -> None:
        if name in self.owners:
            raise ValueError(f"Name {name!r} already registered")
        self.owners[name] = owner

    def owner_of(self, name: str) -> Optional[str]:
        return self.owners.get(name)

    def transfer(self, name: str, sender: str, recipient: str) -> None:
        owner = self.owners.get(name)
        if owner is None:
            raise KeyError(f"Name {name!r} is not registered")
        if owner != sender:
            raise PermissionError(f"{sender} does not own {name!r} (owner: {owner})")
        self.owners[name] = recipient
        self.history.append((name, sender, recipient))


class DomainRewardDelegate:
    """Transfers the auctioned name from the auction account to the winner."""

    def __init__(self, registry: NameRegistry, auction_account: str):
        self.registry = registry
        self.auction_account = auction_account

    def grant(self, winner: str, descriptor: SubjectDescriptor) -> None:
        if descriptor.kind != SubjectKind.NAMED_DOMAIN:
            raise ValueError(f"Cannot grant subject {descriptor.subject} as a domain")
        if not descriptor.domain:
            raise ValueError("No domain specified for a domain auction")

        self.registry.transfer(descriptor.domain, self.auction_account, winner)
        logger.info(f"Transferred domain {descriptor.domain!r} to {winner}")


# =============================================================================
# Routing
# =============================================================================


class RewardRouter:
    """
    Dispatches a grant to the delegate registered for the subject.

    Standard kinds are keyed by SubjectKind; reserved subjects by their raw
    code, so Reserved(7) and Reserved(9) can carry different logic.
    """

    def __init__(self):
        self._delegates: Dict[int, RewardDelegate] = {}

    @staticmethod
    def _key(descriptor: SubjectDescriptor) -> int:
        if descriptor.kind == SubjectKind.RESERVED:
            return descriptor.subject.code
        return int(descriptor.kind)

    def register(self, subject_code: int, delegate: RewardDelegate) -> None:
        if subject_code in self._delegates:
            raise ValueError(f"Delegate already registered for subject code {subject_code}")
        self._delegates[subject_code] = delegate

    def grant(self, winner: str, descriptor: SubjectDescriptor) -> None:
        delegate = self._delegates.get(self._key(descriptor))
        if delegate is None:
            raise LookupError(f"No reward delegate registered for subject {descriptor.subject}")
        delegate.grant(winner, descriptor)


__all__ = [
    "RewardDelegate",
    "CollectionRewardDelegate",
    "NameRegistry",
    "DomainRewardDelegate",
    "RewardRouter",
]

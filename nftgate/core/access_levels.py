"""
Access Level System

Tiers are totally ordered and defined purely by per-collection minimum counts,
so adding NFTs to a wallet's accessible set can never lower its tier.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple


class AccessLevel(str, Enum):
    """Access tiers, lowest first."""

    NONE = "NONE"
    COLLECTOR = "COLLECTOR"
    ACTIVE_RESEARCHER = "ACTIVE_RESEARCHER"
    SENIOR_RESEARCHER = "SENIOR_RESEARCHER"
    ECOSYSTEM_NATIVE = "ECOSYSTEM_NATIVE"

    @property
    def rank(self) -> int:
        return list(AccessLevel).index(self)

    def __lt__(self, other):
        if not isinstance(other, AccessLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, AccessLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, AccessLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, AccessLevel):
            return NotImplemented
        return self.rank >= other.rank


@dataclass(frozen=True)
class AccessTier:
    level: AccessLevel
    requirements: Mapping[str, int]
    features: Tuple[str, ...] = field(default_factory=tuple)

    def is_satisfied_by(self, counts: Mapping[str, int]) -> bool:
        return all(counts.get(key, 0) >= minimum for key, minimum in self.requirements.items())


DEFAULT_ACCESS_TIERS: Tuple[AccessTier, ...] = (
    AccessTier(
        level=AccessLevel.NONE,
        requirements={"clonex": 0, "animus": 0, "animus_eggs": 0, "clonex_vials": 0},
        features=("basic_access",),
    ),
    AccessTier(
        level=AccessLevel.COLLECTOR,
        requirements={"clonex": 1, "animus": 0, "animus_eggs": 0, "clonex_vials": 0},
        features=("basic_access", "collector_features"),
    ),
    AccessTier(
        level=AccessLevel.ACTIVE_RESEARCHER,
        requirements={"clonex": 2, "animus": 1, "animus_eggs": 1, "clonex_vials": 5},
        features=("basic_access", "collector_features", "research_features"),
    ),
    AccessTier(
        level=AccessLevel.SENIOR_RESEARCHER,
        requirements={"clonex": 5, "animus": 2, "animus_eggs": 3, "clonex_vials": 10},
        features=("basic_access", "collector_features", "research_features", "senior_features"),
    ),
    AccessTier(
        level=AccessLevel.ECOSYSTEM_NATIVE,
        requirements={"clonex": 10, "animus": 5, "animus_eggs": 5, "clonex_vials": 25},
        features=(
            "basic_access",
            "collector_features",
            "research_features",
            "senior_features",
            "ecosystem_native",
        ),
    ),
)


class AccessPolicy:
    """Evaluates collection counts against an ordered set of tiers."""

    def __init__(self, tiers: Optional[Tuple[AccessTier, ...]] = None):
        tiers = tiers or DEFAULT_ACCESS_TIERS
        self.tiers: List[AccessTier] = sorted(tiers, key=lambda t: t.level.rank)
        self._by_level: Dict[AccessLevel, AccessTier] = {t.level: t for t in self.tiers}

    def compute(self, counts: Mapping[str, int]) -> AccessLevel:
        """Highest tier whose minimums are all met. Checked from highest to lowest."""
        for tier in reversed(self.tiers):
            if tier.is_satisfied_by(counts):
                return tier.level
        return AccessLevel.NONE

    def features(self, level: AccessLevel) -> Tuple[str, ...]:
        tier = self._by_level.get(level)
        return tier.features if tier else ()

    def requirements_gap(self, counts: Mapping[str, int], target: AccessLevel) -> Dict[str, int]:
        """NFTs still needed per collection to reach the target tier."""
        tier = self._by_level[target]
        return {
            key: minimum - counts.get(key, 0)
            for key, minimum in tier.requirements.items()
            if counts.get(key, 0) < minimum
        }

    def next_level(self, level: AccessLevel) -> Optional[AccessLevel]:
        higher = [t.level for t in self.tiers if t.level > level]
        return higher[0] if higher else None


def compute_access_level(counts: Mapping[str, int]) -> AccessLevel:
    return AccessPolicy().compute(counts)

"""
Tier resolution and transition detection
"""

from typing import Dict, List, Optional, Sequence
from loguru import logger

from .models import Tier, TierEvaluation, UserId
from .storage import StoragePort


def sort_tiers(tiers: Sequence[Tier]) -> List[Tier]:
    """Tiers ordered by min_points, highest threshold first (stable for equal thresholds)"""
    return sorted(tiers, key=lambda t: t.min_points, reverse=True)


def resolve_tier(points: int, tiers: Sequence[Tier]) -> Optional[Tier]:
    """Highest-threshold tier the balance qualifies for, or None"""
    for tier in sort_tiers(tiers):
        if tier.min_points <= points:
            return tier
    return None


def next_tier(points: int, tiers: Sequence[Tier]) -> Optional[Tier]:
    """Lowest tier whose threshold is still above the balance"""
    above = [t for t in sort_tiers(tiers) if t.min_points > points]
    return above[-1] if above else None


def validate_tiers(tiers: Sequence[Tier]) -> List[str]:
    """
    Check the tier table for configuration problems

    Duplicate thresholds make resolution depend on sort order, and duplicate
    ids make previous-tier lookup ambiguous. Problems are logged, never raised.

    Args:
        tiers: Tier table to inspect

    Returns:
        List of problem descriptions (empty when the table is clean)
    """
    problems = []
    seen_ids = set()
    seen_thresholds: Dict[int, str] = {}

    for tier in tiers:
        if tier.id in seen_ids:
            problems.append(f"Duplicate tier id '{tier.id}'")
        seen_ids.add(tier.id)

        if tier.min_points in seen_thresholds:
            problems.append(
                f"Tiers '{seen_thresholds[tier.min_points]}' and '{tier.id}' share "
                f"min_points {tier.min_points}"
            )
        else:
            seen_thresholds[tier.min_points] = tier.id

    for problem in problems:
        logger.warning(f"Tier configuration: {problem}")
    return problems


class TierResolver:
    """
    Determines a user's tier from their balance and persists transitions
    """

    def __init__(self, storage: StoragePort, validate_on_evaluate: bool = False):
        """
        Initialize the resolver

        Args:
            storage: Storage adapter holding profiles and tiers
            validate_on_evaluate: Run validate_tiers() on every evaluation
        """
        self.storage = storage
        self.validate_on_evaluate = validate_on_evaluate
        self.logger = logger

    async def evaluate_and_assign(self, user_id: UserId) -> TierEvaluation:
        """
        Re-evaluate a user's tier and persist it if it changed

        Args:
            user_id: User identifier

        Returns:
            TierEvaluation with previous tier, current tier and change flag
        """
        profile = await self.storage.get_user_profile(user_id)
        if profile is None:
            self.logger.debug(f"Skipping tier evaluation for unknown user {user_id}")
            return TierEvaluation()

        tiers = sort_tiers(await self.storage.get_tiers())
        if self.validate_on_evaluate:
            validate_tiers(tiers)

        previous_tier = next((t for t in tiers if t.id == profile.tier_id), None)
        current_tier = next((t for t in tiers if t.min_points <= profile.points), None)

        previous_id = previous_tier.id if previous_tier else None
        current_id = current_tier.id if current_tier else None
        changed = previous_id != current_id

        if changed:
            profile.tier_id = current_id
            await self.storage.save_user_profile(profile)
            self.logger.info(
                f"Tier changed: user {user_id} {previous_id} -> {current_id} ({profile.points} pts)"
            )
        else:
            self.logger.debug(f"Tier unchanged for user {user_id}: {current_id}")

        return TierEvaluation(previous_tier=previous_tier, current_tier=current_tier, changed=changed)

    async def get_tier(self, user_id: UserId) -> Optional[Tier]:
        """Stored tier of a user, without re-evaluating it"""
        profile = await self.storage.get_user_profile(user_id)
        if profile is None or profile.tier_id is None:
            return None
        tiers = await self.storage.get_tiers()
        return next((t for t in tiers if t.id == profile.tier_id), None)

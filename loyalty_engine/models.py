"""
Data models for the Loyalty Engine
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator


UserId = Union[str, int]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerEntry(BaseModel):
    """One immutable change to a user's point balance"""

    model_config = ConfigDict(frozen=True)

    action: str
    points_change: int
    timestamp: datetime = Field(default_factory=_utcnow)


class UserProfile(BaseModel):
    """Loyalty state of a single user, always read and written as a whole snapshot"""

    user_id: UserId
    points: int = Field(default=0, ge=0)
    tier_id: Optional[str] = None
    history: List[LedgerEntry] = Field(default_factory=list)


class Tier(BaseModel):
    """A named threshold band granting benefits once a balance reaches min_points"""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    min_points: int
    benefits: List[str] = Field(default_factory=list)

    @field_validator('benefits', mode='before')
    @classmethod
    def dedupe_benefits(cls, v):
        """Benefits are a set of labels; keep first-seen order"""
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        seen = []
        for label in v:
            if label not in seen:
                seen.append(label)
        return seen


class TierEvaluation(BaseModel):
    """Outcome of re-evaluating a user's tier"""

    previous_tier: Optional[Tier] = None
    current_tier: Optional[Tier] = None
    changed: bool = False


class LoyaltyEvent(BaseModel):
    """A business event submitted for rule evaluation; never persisted"""

    user_id: UserId
    event: str
    payload: Any = None


class RuleResult(BaseModel):
    """Point award computed by a rule action"""

    points: int
    action_name: Optional[str] = None


class PointsUpdated(BaseModel):
    """Payload of the points_updated notification"""

    user_id: UserId
    points: int
    action: str
    new_balance: int


class TierChanged(BaseModel):
    """Payload of the tier_changed notification"""

    model_config = ConfigDict(populate_by_name=True)

    user_id: UserId
    from_tier: Optional[Tier] = Field(default=None, alias='from')
    to_tier: Optional[Tier] = Field(default=None, alias='to')

    def summary(self) -> Dict[str, Any]:
        """Tier ids only, for log lines"""
        return {
            'user_id': self.user_id,
            'from': self.from_tier.id if self.from_tier else None,
            'to': self.to_tier.id if self.to_tier else None,
        }

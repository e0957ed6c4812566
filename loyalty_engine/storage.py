"""
Storage boundary consumed by the Loyalty Engine

Adapters live outside this package. They own UserProfile persistence and
the tier table; the engine only ever loads and saves whole profiles.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .models import Tier, UserId, UserProfile


class StoragePort(ABC):
    """
    Abstract storage adapter.

    Implementations may raise any exception (optionally a subclass of
    StorageError); the engine propagates it unchanged and never retries.
    Load-then-save is not atomic, so per-user serialization is the
    adapter's responsibility when concurrent writers are possible.
    """

    @abstractmethod
    async def get_user_profile(self, user_id: UserId) -> Optional[UserProfile]:
        """Return the stored profile, or None for unknown users"""

    @abstractmethod
    async def save_user_profile(self, profile: UserProfile) -> UserProfile:
        """Persist the full profile and return the persisted (possibly normalized) copy"""

    @abstractmethod
    async def get_tiers(self) -> List[Tier]:
        """Return every configured tier"""

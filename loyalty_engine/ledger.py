"""
Points ledger: balance mutation and append-only history per user
"""

from typing import List
from loguru import logger

from .exceptions import InsufficientBalanceError, InvalidAmountError
from .models import LedgerEntry, UserId, UserProfile
from .storage import StoragePort


def validate_amount(amount) -> int:
    # bool is an int subclass; True must not count as one point
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(amount)
    return amount


class PointsLedger:
    """
    Owns point balance mutation for users.

    Every mutating call performs exactly one profile load and one profile
    save through the storage port. Amounts are validated before storage is
    touched, so a rejected call leaves the profile and its history as-is.
    """

    def __init__(self, storage: StoragePort):
        """
        Initialize the ledger

        Args:
            storage: Storage adapter holding user profiles
        """
        self.storage = storage
        self.logger = logger

    async def get_or_create(self, user_id: UserId) -> UserProfile:
        """
        Return the stored profile, creating and persisting an empty one if absent

        Args:
            user_id: User identifier

        Returns:
            Persisted UserProfile
        """
        profile = await self.storage.get_user_profile(user_id)
        if profile is not None:
            return profile

        self.logger.debug(f"Creating loyalty profile for user {user_id}")
        return await self.storage.save_user_profile(UserProfile(user_id=user_id))

    async def add(self, user_id: UserId, amount: int, action: str) -> UserProfile:
        """
        Award points to a user

        Args:
            user_id: User identifier
            amount: Positive number of points
            action: Human-readable label stored in the ledger entry

        Returns:
            The persisted profile after the award

        Raises:
            InvalidAmountError: If amount is not a positive integer
        """
        amount = validate_amount(amount)
        profile = await self._load(user_id)

        profile.points += amount
        profile.history.append(LedgerEntry(action=action, points_change=amount))

        saved = await self.storage.save_user_profile(profile)
        self.logger.info(f"Points added: user {user_id} +{amount} ({action}), balance {saved.points}")
        return saved

    async def subtract(self, user_id: UserId, amount: int, action: str) -> UserProfile:
        """
        Deduct points from a user

        Args:
            user_id: User identifier
            amount: Positive number of points
            action: Human-readable label stored in the ledger entry

        Returns:
            The persisted profile after the deduction

        Raises:
            InvalidAmountError: If amount is not a positive integer
            InsufficientBalanceError: If the balance is lower than amount
        """
        amount = validate_amount(amount)
        profile = await self._load(user_id)

        if profile.points < amount:
            self.logger.warning(
                f"Rejected deduction for user {user_id}: balance {profile.points} < {amount}"
            )
            raise InsufficientBalanceError(profile.points, amount)

        profile.points -= amount
        profile.history.append(LedgerEntry(action=action, points_change=-amount))

        saved = await self.storage.save_user_profile(profile)
        self.logger.info(f"Points subtracted: user {user_id} -{amount} ({action}), balance {saved.points}")
        return saved

    async def get_balance(self, user_id: UserId) -> int:
        """Current balance; 0 for unknown users, which are not created"""
        profile = await self.storage.get_user_profile(user_id)
        return profile.points if profile is not None else 0

    async def get_history(self, user_id: UserId) -> List[LedgerEntry]:
        """Ledger entries in the order they were applied; empty for unknown users"""
        profile = await self.storage.get_user_profile(user_id)
        return list(profile.history) if profile is not None else []

    async def _load(self, user_id: UserId) -> UserProfile:
        # A missing profile is built in memory and persisted by the caller's single save
        profile = await self.storage.get_user_profile(user_id)
        if profile is None:
            self.logger.debug(f"No profile for user {user_id}, starting from zero")
            profile = UserProfile(user_id=user_id)
        return profile

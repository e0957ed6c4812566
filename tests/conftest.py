"""
Pytest configuration and fixtures for Loyalty Engine tests.
"""
import pytest
from typing import Dict, List, Optional

from loyalty_engine import LoyaltyEngine, LoyaltyEngineConfig, StoragePort, Tier, UserProfile


DEFAULT_TIERS = [
    Tier(id='bronze', name='Bronze', min_points=0, benefits=[]),
    Tier(id='silver', name='Silver', min_points=500, benefits=['free_shipping']),
    Tier(id='gold', name='Gold', min_points=2000, benefits=['free_shipping', 'early_access']),
]


class InMemoryStorage(StoragePort):
    """Storage adapter for tests; every read and write is a deep copy."""

    def __init__(self, tiers: Optional[List[Tier]] = None):
        self.users: Dict[object, UserProfile] = {}
        self.tiers = list(DEFAULT_TIERS if tiers is None else tiers)
        self.load_count = 0
        self.save_count = 0
        self.fail_on_save = None

    async def get_user_profile(self, user_id):
        self.load_count += 1
        profile = self.users.get(user_id)
        return profile.model_copy(deep=True) if profile is not None else None

    async def save_user_profile(self, profile):
        if self.fail_on_save is not None:
            raise self.fail_on_save
        self.save_count += 1
        self.users[profile.user_id] = profile.model_copy(deep=True)
        return profile.model_copy(deep=True)

    async def get_tiers(self):
        return list(self.tiers)

    def reset_counters(self):
        self.load_count = 0
        self.save_count = 0


class Recorder:
    """Collects notifications delivered by the event bus."""

    def __init__(self):
        self.calls = []

    def __call__(self, payload):
        self.calls.append(payload)


@pytest.fixture
def storage():
    """In-memory storage with bronze/silver/gold tiers."""
    return InMemoryStorage()


@pytest.fixture
def config():
    """Explicit default configuration, independent of env and working directory."""
    return LoyaltyEngineConfig()


@pytest.fixture
def purchase_rules():
    """Purchase rule: floor(amount) points when amount > 50."""
    return {
        'purchase': {
            'condition': lambda payload, user_id: payload['amount'] > 50,
            'action': lambda payload, user_id: {
                'points': int(payload['amount'] // 1),
                'action_name': f"Purchase of ${payload['amount']}",
            },
        },
    }


@pytest.fixture
def engine(storage, purchase_rules, config):
    """Engine over in-memory storage with the purchase rule."""
    return LoyaltyEngine(storage, purchase_rules, config=config, configure_logger=False)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def tier_recorder():
    return Recorder()

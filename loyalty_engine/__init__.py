"""
Loyalty Engine

Point ledger, rule evaluation and tier transitions for loyalty programs,
behind an abstract storage port.
"""

__version__ = "1.0.0"

from .core import LoyaltyEngine, create_loyalty_system
from .models import (
    UserId, UserProfile, LedgerEntry, Tier, TierEvaluation, LoyaltyEvent,
    RuleResult, PointsUpdated, TierChanged,
)
from .rules import Condition, Rule, RuleSet, define_rules
from .events import EventBus, EventKind
from .ledger import PointsLedger
from .tiers import TierResolver, resolve_tier, next_tier, validate_tiers
from .storage import StoragePort
from .benefits import Benefit, BenefitProcessor
from .rule_loader import RuleLoader
from .formula_parser import FormulaParser
from .config import LoyaltyEngineConfig, ConfigManager, configure_logging, get_config
from .exceptions import (
    LoyaltyEngineError,
    InvalidAmountError,
    InsufficientBalanceError,
    StorageError,
    RuleDefinitionError,
    FormulaError,
    UnknownEventKindError,
    ConfigurationError,
)

__all__ = [
    "LoyaltyEngine",
    "create_loyalty_system",
    "UserId",
    "UserProfile",
    "LedgerEntry",
    "Tier",
    "TierEvaluation",
    "LoyaltyEvent",
    "RuleResult",
    "PointsUpdated",
    "TierChanged",
    "Condition",
    "Rule",
    "RuleSet",
    "define_rules",
    "EventBus",
    "EventKind",
    "PointsLedger",
    "TierResolver",
    "resolve_tier",
    "next_tier",
    "validate_tiers",
    "StoragePort",
    "Benefit",
    "BenefitProcessor",
    "RuleLoader",
    "FormulaParser",
    "LoyaltyEngineConfig",
    "ConfigManager",
    "configure_logging",
    "get_config",
    "LoyaltyEngineError",
    "InvalidAmountError",
    "InsufficientBalanceError",
    "StorageError",
    "RuleDefinitionError",
    "FormulaError",
    "UnknownEventKindError",
    "ConfigurationError",
]

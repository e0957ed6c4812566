"""
Core Loyalty Engine implementation
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union
from loguru import logger

from .benefits import BenefitProcessor
from .config import LoyaltyEngineConfig, configure_logging, get_config
from .events import EventBus, EventKind, Handler
from .ledger import PointsLedger, validate_amount
from .models import LoyaltyEvent, PointsUpdated, RuleResult, TierChanged, TierEvaluation, UserId
from .rule_loader import RuleLoader
from .rules import Rule, RuleSet, define_rules
from .storage import StoragePort
from .tiers import TierResolver


class LoyaltyEngine:
    """
    Rule evaluation and tier-transition pipeline.

    A triggered event runs its rules in registration order, applies each
    award through the points ledger, publishes points_updated per award,
    then re-evaluates the user's tier and publishes tier_changed on a
    transition. Manual ledger calls through ``points`` do not re-evaluate
    tiers; trigger any event (even an unknown one) afterwards to do so.
    """

    def __init__(self, storage: StoragePort, rules: Union[RuleSet, Mapping[str, Any], None] = None,
                 config: Optional[LoyaltyEngineConfig] = None, benefits: Optional[BenefitProcessor] = None,
                 configure_logger: bool = True):
        """
        Initialize the Loyalty Engine

        Args:
            storage: Storage adapter for profiles and tiers
            rules: RuleSet, or a mapping accepted by define_rules()
            config: Engine configuration; the global configuration when omitted
            benefits: Benefit implementations used by apply_benefits()
            configure_logger: Replace loguru sinks according to config
        """
        self.config = config or get_config()
        if configure_logger:
            configure_logging(self.config)

        self.storage = storage
        self.points = PointsLedger(storage)
        self.tiers = TierResolver(storage, validate_on_evaluate=self.config.validate_tiers_on_evaluate)
        self.events = EventBus()
        self.benefits = benefits or BenefitProcessor()

        self.rules = define_rules(rules or {})
        if self.config.rules_file:
            self.rules = self.rules.merge(self._load_rules_file(self.config.rules_file))

        logger.info(
            f"Loyalty Engine initialized with {len(self.rules)} rule(s) "
            f"for {len(self.rules.events())} event(s)"
        )

    @staticmethod
    def _load_rules_file(path: str) -> RuleSet:
        loader = RuleLoader()
        if Path(path).is_dir():
            return loader.load_directory(path)
        return loader.load_file(path)

    async def trigger(self, event: str, user_id: UserId, payload: Any = None) -> None:
        """
        Submit a business event and wait for the pipeline to finish

        Args:
            event: Event label used to select rules
            user_id: User the event belongs to
            payload: Event payload passed to rule conditions and actions
        """
        await self.process_event(user_id, event, payload)

    async def process_event(self, user_id: UserId, event: str, payload: Any = None) -> None:
        """
        Run the rules registered for an event, then re-evaluate the user's tier

        Args:
            user_id: User identifier
            event: Event label
            payload: Event payload

        Raises:
            Whatever a rule raises, unless isolate_rule_failures is set.
            Storage and event handler errors always propagate.
        """
        rules = self.rules.rules_for(event)
        logger.debug(f"Processing event '{event}' for user {user_id}: {len(rules)} rule(s) matched")

        for rule in rules:
            try:
                result = await self._run_rule(rule, user_id, payload)
            except Exception:
                if not self.config.isolate_rule_failures:
                    logger.error(f"Rule '{rule.name}' failed for event '{event}', user {user_id}")
                    raise
                logger.exception(f"Rule '{rule.name}' failed for event '{event}', user {user_id}; skipping")
                continue

            if result is not None:
                await self._award(user_id, result)

        await self._evaluate_tier(user_id)

    async def handle(self, loyalty_event: LoyaltyEvent) -> None:
        """process_event() for a LoyaltyEvent record"""
        await self.process_event(loyalty_event.user_id, loyalty_event.event, loyalty_event.payload)

    async def _run_rule(self, rule: Rule, user_id: UserId, payload: Any) -> Optional[RuleResult]:
        """Condition and action of one rule; None when the condition is not met"""
        if not await rule.matches(payload, user_id):
            logger.debug(f"Condition of rule '{rule.name}' not met for user {user_id}")
            return None

        result = await rule.execute(payload, user_id)
        validate_amount(result.points)
        return result

    async def _award(self, user_id: UserId, result: RuleResult) -> None:
        profile = await self.points.add(user_id, result.points, result.action_name)

        self.events.emit(EventKind.POINTS_UPDATED, PointsUpdated(
            user_id=user_id,
            points=result.points,
            action=result.action_name,
            new_balance=profile.points,
        ))

    async def _evaluate_tier(self, user_id: UserId) -> TierEvaluation:
        evaluation = await self.tiers.evaluate_and_assign(user_id)
        if evaluation.changed:
            self.events.emit(EventKind.TIER_CHANGED, TierChanged(
                user_id=user_id,
                from_tier=evaluation.previous_tier,
                to_tier=evaluation.current_tier,
            ))
        return evaluation

    def on(self, kind: Union[EventKind, str], handler: Handler) -> None:
        """Subscribe to points_updated or tier_changed"""
        self.events.on(kind, handler)

    def off(self, kind: Union[EventKind, str], handler: Handler) -> None:
        """Unsubscribe from points_updated or tier_changed"""
        self.events.off(kind, handler)

    async def apply_benefits(self, user_id: UserId, context: Any) -> Any:
        """Apply the benefits of the user's stored tier to context"""
        tier = await self.tiers.get_tier(user_id)
        return self.benefits.apply_benefits(tier, context)

    def get_rule_summary(self) -> Dict[str, Any]:
        """Registered rules grouped by event"""
        events: Dict[str, List[str]] = {
            event: [rule.name for rule in self.rules.rules_for(event)]
            for event in self.rules.events()
        }
        return {
            'total_rules': len(self.rules),
            'events': events,
        }


def create_loyalty_system(storage: StoragePort, rules: Union[RuleSet, Mapping[str, Any], None] = None,
                          config: Optional[LoyaltyEngineConfig] = None, **kwargs) -> LoyaltyEngine:
    """
    Create and configure a loyalty system

    Args:
        storage: Storage adapter
        rules: Rule table keyed by event label
        config: Engine configuration
        **kwargs: Passed through to LoyaltyEngine

    Returns:
        LoyaltyEngine exposing trigger(), on()/off() and the points ledger
    """
    return LoyaltyEngine(storage, rules, config=config, **kwargs)

"""
Rule records and rule tables keyed by event label
"""

import inspect
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Mapping, Optional, Union
from loguru import logger

from .exceptions import InvalidAmountError, RuleDefinitionError
from .models import RuleResult, UserId

ConditionFn = Callable[[Any, UserId], Union[bool, Awaitable[bool]]]
ActionFn = Callable[[Any, UserId], Any]


async def _resolve(value):
    if inspect.isawaitable(value):
        return await value
    return value


class Condition:
    """
    Rule predicate over (payload, user_id).

    Use Condition.ALWAYS for unconditional rules rather than a missing
    callable.
    """

    ALWAYS: "Condition"

    def __init__(self, predicate: Optional[ConditionFn] = None, description: str = ""):
        self.predicate = predicate
        self.description = description or getattr(predicate, '__name__', 'always')

    @property
    def is_always(self) -> bool:
        return self.predicate is None

    async def evaluate(self, payload: Any, user_id: UserId) -> bool:
        if self.predicate is None:
            return True
        return bool(await _resolve(self.predicate(payload, user_id)))

    def __repr__(self) -> str:
        return f"Condition({self.description})"


Condition.ALWAYS = Condition(None, "always")


def normalize_result(raw: Any, event: str) -> RuleResult:
    """
    Turn an action's return value into a RuleResult

    Accepts a RuleResult, a mapping with 'points' and optional 'action_name'
    (or 'actionName'), or a bare integer. action_name defaults to the event.

    Raises:
        InvalidAmountError: If points is missing or not an integer
    """
    if isinstance(raw, RuleResult):
        points, action_name = raw.points, raw.action_name
    elif isinstance(raw, Mapping):
        points = raw.get('points')
        action_name = raw.get('action_name', raw.get('actionName'))
    else:
        points, action_name = raw, None

    if isinstance(points, bool) or not isinstance(points, int):
        raise InvalidAmountError(points)

    return RuleResult(points=points, action_name=action_name or event)


class Rule:
    """
    A (condition, action) pair bound to an event label
    """

    def __init__(self, event: str, action: ActionFn,
                 condition: Union[Condition, ConditionFn, None] = None, name: Optional[str] = None):
        if not event or not isinstance(event, str):
            raise RuleDefinitionError(f"Rule event must be a non-empty string, got {event!r}")
        if not callable(action):
            raise RuleDefinitionError(f"Rule action for '{event}' must be callable")

        if condition is None:
            condition = Condition.ALWAYS
        elif not isinstance(condition, Condition):
            if not callable(condition):
                raise RuleDefinitionError(f"Rule condition for '{event}' must be callable")
            condition = Condition(condition)

        self.event = event
        self.action = action
        self.condition = condition
        self.name = name or getattr(action, '__name__', event)

    async def matches(self, payload: Any, user_id: UserId) -> bool:
        return await self.condition.evaluate(payload, user_id)

    async def execute(self, payload: Any, user_id: UserId) -> RuleResult:
        raw = await _resolve(self.action(payload, user_id))
        return normalize_result(raw, self.event)

    def __repr__(self) -> str:
        return f"Rule(name={self.name!r}, event={self.event!r}, condition={self.condition!r})"


class RuleSet:
    """
    Ordered rule table keyed by event label.

    Rules for the same event keep registration order; all of them are
    evaluated for every matching event.
    """

    def __init__(self, rules: Optional[List[Rule]] = None):
        self._rules: Dict[str, List[Rule]] = {}
        for rule in rules or []:
            self.add(rule)

    def add(self, rule: Rule) -> None:
        if not isinstance(rule, Rule):
            raise RuleDefinitionError(f"Expected Rule, got {type(rule).__name__}")
        self._rules.setdefault(rule.event, []).append(rule)

    def rules_for(self, event: str) -> List[Rule]:
        return list(self._rules.get(event, []))

    def events(self) -> List[str]:
        return list(self._rules)

    def merge(self, other: "RuleSet") -> "RuleSet":
        """New RuleSet with other's rules appended after this one's"""
        merged = RuleSet(list(self))
        for rule in other:
            merged.add(rule)
        return merged

    def __iter__(self) -> Iterator[Rule]:
        for rules in self._rules.values():
            yield from rules

    def __len__(self) -> int:
        return sum(len(rules) for rules in self._rules.values())


def _rule_from_spec(event: str, spec: Any) -> Rule:
    if isinstance(spec, Rule):
        if spec.event != event:
            raise RuleDefinitionError(f"Rule '{spec.name}' is bound to '{spec.event}', not '{event}'")
        return spec

    if not isinstance(spec, Mapping):
        raise RuleDefinitionError(f"Rule spec for '{event}' must be a Rule or mapping")
    if 'action' not in spec:
        raise RuleDefinitionError(f"Rule spec for '{event}' has no action")

    return Rule(event=event, action=spec['action'], condition=spec.get('condition'), name=spec.get('name'))


def define_rules(config: Mapping[str, Any]) -> RuleSet:
    """
    Build a RuleSet from a mapping of event label to rule spec(s)

    Args:
        config: {event: spec} or {event: [spec, ...]} where each spec is a
            Rule or a mapping with 'action' and optional 'condition'/'name'

    Returns:
        RuleSet in mapping order, then list order
    """
    if isinstance(config, RuleSet):
        return config

    ruleset = RuleSet()
    for event, specs in (config or {}).items():
        if isinstance(specs, (list, tuple)):
            for spec in specs:
                ruleset.add(_rule_from_spec(event, spec))
        else:
            ruleset.add(_rule_from_spec(event, specs))

    logger.debug(f"Defined {len(ruleset)} rule(s) for {len(ruleset.events())} event(s)")
    return ruleset

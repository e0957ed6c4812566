"""
Loading of declarative rules from JSON files

A rule file holds either a list of rule objects or {"rules": [...]}:

    {"rules": [
        {"name": "Points for purchase", "event": "purchase",
         "condition": "amount > 50", "points": "floor(amount)",
         "action_name": "Purchase of ${amount}"}
    ]}
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union
from loguru import logger

from .exceptions import FormulaError, RuleDefinitionError
from .formula_parser import FormulaParser
from .models import UserId
from .rules import Condition, Rule, RuleSet


def _payload_context(payload: Any) -> Dict[str, Any]:
    if payload is None:
        return {}
    if isinstance(payload, Mapping):
        return dict(payload)
    if hasattr(payload, 'model_dump'):
        return payload.model_dump()
    raise FormulaError(repr(payload), "declarative rules need a mapping payload")


class _FormulaCondition:
    def __init__(self, parser: FormulaParser, formula: str):
        self.parser = parser
        self.formula = formula
        self.__name__ = formula

    def __call__(self, payload: Any, user_id: UserId) -> bool:
        context = _payload_context(payload)
        context.setdefault('user_id', user_id)
        return bool(self.parser.evaluate(self.formula, context))


class _FormulaAction:
    def __init__(self, parser: FormulaParser, formula: str, action_name: str = None):
        self.parser = parser
        self.formula = formula
        self.action_name = action_name
        self.__name__ = formula

    def __call__(self, payload: Any, user_id: UserId) -> Dict[str, Any]:
        context = _payload_context(payload)
        context.setdefault('user_id', user_id)
        points = self.parser.evaluate(self.formula, context)

        # floor()/ceil() already return int; accept integral floats from plain arithmetic
        if isinstance(points, float) and points.is_integer():
            points = int(points)

        action_name = None
        if self.action_name:
            try:
                action_name = self.action_name.format(**context)
            except (KeyError, IndexError, ValueError) as e:
                raise FormulaError(self.action_name, f"bad action_name template: {e}") from e

        return {'points': points, 'action_name': action_name}


class RuleLoader:
    """
    Builds RuleSets from JSON rule definitions
    """

    def __init__(self, parser: FormulaParser = None):
        """
        Initialize rule loader

        Args:
            parser: FormulaParser used to evaluate conditions and point formulas
        """
        self.parser = parser or FormulaParser()

    def load_dict(self, data: Union[Mapping[str, Any], List[Any]], source: str = "<dict>") -> RuleSet:
        """
        Build a RuleSet from parsed rule definitions

        Args:
            data: List of rule objects, or a mapping with a 'rules' list
            source: Label used in error messages

        Returns:
            RuleSet in definition order
        """
        if isinstance(data, Mapping):
            data = data.get('rules')
        if not isinstance(data, list):
            raise RuleDefinitionError(f"{source}: expected a list of rules")

        ruleset = RuleSet()
        for index, definition in enumerate(data):
            ruleset.add(self._build_rule(definition, f"{source}[{index}]"))

        logger.info(f"Loaded {len(ruleset)} rule(s) from {source}")
        return ruleset

    def load_file(self, path: Union[str, Path]) -> RuleSet:
        """
        Load rules from a JSON file

        Args:
            path: Path to the rule file

        Returns:
            RuleSet
        """
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise RuleDefinitionError(f"Rule file {path} does not exist") from e
        except json.JSONDecodeError as e:
            raise RuleDefinitionError(f"Rule file {path} is not valid JSON: {e}") from e

        return self.load_dict(data, source=path.name)

    def load_directory(self, directory: Union[str, Path]) -> RuleSet:
        """Load every *.json file in a directory, in file name order"""
        directory = Path(directory)
        if not directory.is_dir():
            raise RuleDefinitionError(f"Rules directory {directory} does not exist")

        ruleset = RuleSet()
        json_files = sorted(directory.glob("*.json"))
        logger.info(f"Found {len(json_files)} rule file(s) in {directory}")
        for json_file in json_files:
            ruleset = ruleset.merge(self.load_file(json_file))
        return ruleset

    def _build_rule(self, definition: Any, source: str) -> Rule:
        if not isinstance(definition, Mapping):
            raise RuleDefinitionError(f"{source}: rule must be an object")

        event = definition.get('event')
        points = definition.get('points')
        if not event:
            raise RuleDefinitionError(f"{source}: missing 'event'")
        if points is None:
            raise RuleDefinitionError(f"{source}: missing 'points'")

        # Fixed awards may be given as a number
        points_formula = str(points)
        condition_formula = definition.get('condition')
        try:
            self.parser.parse(points_formula)
            if condition_formula:
                self.parser.parse(condition_formula)
        except FormulaError as e:
            raise RuleDefinitionError(f"{source}: {e.message}") from e

        condition = Condition.ALWAYS
        if condition_formula:
            condition = Condition(_FormulaCondition(self.parser, condition_formula), condition_formula)

        return Rule(
            event=event,
            action=_FormulaAction(self.parser, points_formula, definition.get('action_name')),
            condition=condition,
            name=definition.get('name') or f"{event}:{points_formula}",
        )

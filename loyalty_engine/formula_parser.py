"""
Formula parser and evaluator for declarative rules

Conditions and point formulas in rule files are small Python-like
expressions over the event payload, e.g. "amount > 50" or "floor(amount)".
They are evaluated by walking the AST; eval() is never used.
"""

import ast
import math
from typing import Any, Callable, Dict, List, Mapping, Optional
from loguru import logger

from .exceptions import FormulaError


class FormulaParser:
    """
    Parses and evaluates rule formulas against an event payload
    """

    def __init__(self, functions: Optional[Dict[str, Callable]] = None):
        """
        Initialize formula parser

        Args:
            functions: Extra functions made available to formulas
        """
        self.logger = logger
        self.functions: Dict[str, Callable] = {
            'floor': math.floor,
            'ceil': math.ceil,
            'min': min,
            'max': max,
            'abs': abs,
            'round': round,
        }
        if functions:
            self.functions.update(functions)
        self._cache: Dict[str, ast.Expression] = {}

    def parse(self, formula: str) -> ast.Expression:
        """
        Parse a formula into an AST, rejecting unsupported syntax up front

        Args:
            formula: Formula string

        Returns:
            Parsed expression tree

        Raises:
            FormulaError: If the formula is empty, malformed or uses unsupported syntax
        """
        if not isinstance(formula, str):
            raise FormulaError(repr(formula), f"formula must be a string, got {type(formula).__name__}")

        if formula in self._cache:
            return self._cache[formula]

        if not formula.strip():
            raise FormulaError(formula, "empty formula")

        try:
            tree = ast.parse(formula.strip(), mode='eval')
        except SyntaxError as e:
            raise FormulaError(formula, f"syntax error: {e.msg}") from e

        for node in ast.walk(tree):
            if not isinstance(node, self._ALLOWED_NODES):
                raise FormulaError(formula, f"unsupported syntax: {type(node).__name__}")
            if isinstance(node, ast.Call):
                if not isinstance(node.func, ast.Name) or node.func.id not in self.functions:
                    raise FormulaError(formula, f"unknown function: {ast.unparse(node.func)}")
                if node.keywords:
                    raise FormulaError(formula, "keyword arguments are not supported")

        self._cache[formula] = tree
        return tree

    def get_formula_parameters(self, formula: str) -> List[str]:
        """Payload fields referenced by a formula, in first-seen order"""
        tree = self.parse(formula)
        called = {id(n.func) for n in ast.walk(tree) if isinstance(n, ast.Call)}
        names = []
        for node in ast.walk(tree):
            if isinstance(node, ast.Name) and id(node) not in called and node.id not in names:
                names.append(node.id)
        return names

    def evaluate(self, formula: str, context: Mapping[str, Any]) -> Any:
        """
        Evaluate a formula

        Args:
            formula: Formula string
            context: Names available to the formula (usually the event payload)

        Returns:
            Evaluation result
        """
        tree = self.parse(formula)
        try:
            result = self._evaluate_ast(tree.body, context)
        except FormulaError as e:
            raise FormulaError(formula, e.reason) from e
        except (ArithmeticError, TypeError, ValueError) as e:
            raise FormulaError(formula, str(e)) from e

        self.logger.trace(f"Formula '{formula}' evaluated to: {result!r}")
        return result

    _ALLOWED_NODES = (
        ast.Expression, ast.Constant, ast.Name, ast.Load,
        ast.BinOp, ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod, ast.Pow,
        ast.UnaryOp, ast.UAdd, ast.USub, ast.Not,
        ast.BoolOp, ast.And, ast.Or,
        ast.Compare, ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE, ast.In, ast.NotIn,
        ast.IfExp, ast.Call, ast.List, ast.Tuple,
    )

    _BIN_OPS = {
        ast.Add: lambda a, b: a + b,
        ast.Sub: lambda a, b: a - b,
        ast.Mult: lambda a, b: a * b,
        ast.Div: lambda a, b: a / b,
        ast.FloorDiv: lambda a, b: a // b,
        ast.Mod: lambda a, b: a % b,
        ast.Pow: lambda a, b: a ** b,
    }

    _COMPARE_OPS = {
        ast.Eq: lambda a, b: a == b,
        ast.NotEq: lambda a, b: a != b,
        ast.Lt: lambda a, b: a < b,
        ast.LtE: lambda a, b: a <= b,
        ast.Gt: lambda a, b: a > b,
        ast.GtE: lambda a, b: a >= b,
        ast.In: lambda a, b: a in b,
        ast.NotIn: lambda a, b: a not in b,
    }

    def _evaluate_ast(self, node, context: Mapping[str, Any]):
        """
        Evaluate AST nodes safely

        Args:
            node: AST node
            context: Name bindings

        Returns:
            Evaluation result
        """
        if isinstance(node, ast.Constant):
            return node.value

        elif isinstance(node, ast.Name):
            if node.id not in context:
                raise FormulaError(ast.unparse(node), f"unknown name '{node.id}'")
            return context[node.id]

        elif isinstance(node, ast.BinOp):
            left = self._evaluate_ast(node.left, context)
            right = self._evaluate_ast(node.right, context)
            return self._BIN_OPS[type(node.op)](left, right)

        elif isinstance(node, ast.UnaryOp):
            operand = self._evaluate_ast(node.operand, context)
            if isinstance(node.op, ast.UAdd):
                return +operand
            elif isinstance(node.op, ast.USub):
                return -operand
            return not operand

        elif isinstance(node, ast.BoolOp):
            # Short-circuit like Python
            if isinstance(node.op, ast.And):
                result = True
                for value in node.values:
                    result = self._evaluate_ast(value, context)
                    if not result:
                        return result
                return result
            result = False
            for value in node.values:
                result = self._evaluate_ast(value, context)
                if result:
                    return result
            return result

        elif isinstance(node, ast.Compare):
            left = self._evaluate_ast(node.left, context)
            for op, comparator in zip(node.ops, node.comparators):
                right = self._evaluate_ast(comparator, context)
                if not self._COMPARE_OPS[type(op)](left, right):
                    return False
                left = right
            return True

        elif isinstance(node, ast.IfExp):
            if self._evaluate_ast(node.test, context):
                return self._evaluate_ast(node.body, context)
            return self._evaluate_ast(node.orelse, context)

        elif isinstance(node, ast.Call):
            args = [self._evaluate_ast(arg, context) for arg in node.args]
            return self.functions[node.func.id](*args)

        elif isinstance(node, (ast.List, ast.Tuple)):
            return [self._evaluate_ast(elt, context) for elt in node.elts]

        raise FormulaError(ast.unparse(node), f"unsupported AST node: {type(node).__name__}")

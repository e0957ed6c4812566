"""
Custom exceptions for the Loyalty Engine
"""


class LoyaltyEngineError(Exception):
    """Base exception for all loyalty engine errors"""

    def __init__(self, message: str, code: str = "LOYALTY_ENGINE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidAmountError(LoyaltyEngineError):
    """Raised when a ledger mutation is requested with a non-positive amount"""

    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Points must be a positive integer, got {amount!r}", "INVALID_AMOUNT")


class InsufficientBalanceError(LoyaltyEngineError):
    """Raised when a subtraction exceeds the current balance"""

    def __init__(self, current: int, required: int):
        self.current = current
        self.required = required
        message = f"Insufficient points. Current: {current}, Required: {required}"
        super().__init__(message, "INSUFFICIENT_BALANCE")


class StorageError(LoyaltyEngineError):
    """Optional base for storage adapter failures; the engine never wraps them"""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message, "STORAGE_ERROR")


class RuleDefinitionError(LoyaltyEngineError):
    """Raised when a rule spec or rule file is malformed"""

    def __init__(self, message: str):
        super().__init__(message, "RULE_DEFINITION_ERROR")


class FormulaError(LoyaltyEngineError):
    """Raised when a declarative formula cannot be parsed or evaluated"""

    def __init__(self, formula: str, reason: str):
        self.formula = formula
        self.reason = reason
        super().__init__(f"Error evaluating formula '{formula}': {reason}", "FORMULA_ERROR")


class UnknownEventKindError(LoyaltyEngineError):
    """Raised when subscribing to an event kind the bus does not publish"""

    def __init__(self, kind):
        self.kind = kind
        super().__init__(f"Unknown event kind: {kind!r}", "UNKNOWN_EVENT_KIND")


class ConfigurationError(LoyaltyEngineError):
    """Raised when configuration values are invalid"""

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")

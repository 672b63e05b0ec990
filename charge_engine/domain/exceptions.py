"""Domain-specific exceptions"""


class ChargeEngineError(Exception):
    """Base exception for the charge engine"""

    pass


class ValidationError(ChargeEngineError):
    """Transaction request is incomplete, non-positive or a duplicate"""

    pass


class NotFoundError(ChargeEngineError):
    """Referenced customer or rule does not exist"""

    pass


class RuleComputationError(ChargeEngineError):
    """A fee strategy could not compute its charge"""

    pass


class BalanceServiceError(RuleComputationError):
    """Balance service returned an error or is unavailable"""

    pass


class PersistenceError(ChargeEngineError):
    """Durable write of a calculated transaction failed"""

    pass


class InvalidRuleTransitionError(ChargeEngineError):
    """Requested rule status change is not allowed by the rule lifecycle"""

    pass

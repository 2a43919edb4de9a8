"""
Error taxonomy shared by the use cases and the HTTP layer
"""


class BudgetError(Exception):
    """Base class for every error raised by the budgeting core"""
    pass


class ValidationError(BudgetError, ValueError):
    """Input rejected before any write happened"""
    pass


class NotFound(BudgetError, LookupError):
    """Referenced transaction or fixed cost does not exist"""
    pass


class StorageError(BudgetError):
    """Underlying store failed; the current unit of work was rolled back"""
    pass

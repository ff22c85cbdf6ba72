"""
This file contains custom, application-specific exceptions.
"""

class LedgerError(Exception):
    """Base class for violations detected while computing or applying ledger actions."""
    pass

class NegativeBalanceError(LedgerError):
    """Raised when an action would leave a student's hour balance below zero."""
    pass

class PaidDebtMutationError(LedgerError):
    """Raised when an update or removal targets a debt that has already been paid."""
    pass

class DebtOwnershipError(LedgerError):
    """Raised when a debt action references a debt of another student or class session."""
    pass

class UnpaidDebtKeepError(LedgerError):
    """Raised when a keep action targets a debt that has no payment behind it."""
    pass

"""
Ledger Error Taxonomy

Domain errors raised by the ledger core. All of them derive from ValueError so
callers that validate input by catching ValueError keep working; catch
LedgerError to handle only ledger-specific failures.
"""


class LedgerError(ValueError):
    """Base class for all ledger domain errors"""
    pass


class InvalidAmountError(LedgerError):
    """Zero, negative or otherwise nonsensical monetary input"""
    pass


class InsufficientFundsError(LedgerError):
    """Withdrawal exceeds the balance of a non-negative-balance account"""
    pass


class CreditLimitExceededError(LedgerError):
    """Withdrawal would push a credit account past its credit limit"""
    pass


class InvalidCurrencyError(LedgerError):
    """Currency code outside the supported set"""
    pass


class UnsupportedConversionError(LedgerError):
    """No exchange rate configured for the requested currency pair"""
    pass


class CrossOwnershipError(LedgerError):
    """Operation requires both accounts to belong to the same customer"""
    pass


class AccountTypeError(LedgerError):
    """Account type not allowed for the requested operation"""
    pass


class SourceTypeError(AccountTypeError):
    """Transfer originated from an account type that may not originate transfers"""
    pass


class MissingAccountError(LedgerError):
    """Referenced account does not exist"""
    pass


class MissingCustomerError(LedgerError):
    """Referenced customer does not exist"""
    pass


class ConstructionValidationError(LedgerError):
    """Invalid field combination when creating a customer or account"""
    pass


class InvalidCnpError(ConstructionValidationError):
    """Personal numeric code (CNP) is not 13 digits"""
    pass

"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class LedgerConfig(BaseSettings):
    """Retail ledger configuration"""

    # Currency and IBAN configuration
    default_currency: str = "RON"
    bank_code: str = "SMTB"  # Bank segment embedded in generated IBANs

    # Product defaults
    savings_interest_rate: float = 2.0  # Percent per month
    credit_interest_rate: float = 5.0   # Percent per month, charged on debt
    credit_limit: float = -5000.0
    loaded_credit_limit: float = -5000.0  # Used when a stored credit row has no limit

    # Persistence configuration
    data_dir: str = "."
    customers_file: str = "customers.txt"
    accounts_file: str = "accounts.txt"
    transactions_file: str = "transactions.txt"

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr

    class Config:
        env_prefix = "LEDGER_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config

"""
Retail Ledger

A small multi-currency retail banking ledger: customers, typed accounts
(debit, savings, credit), transfers with currency conversion and monthly
interest accrual, all using Decimal arithmetic.
"""

__version__ = "1.0.0"

#!/usr/bin/env python3
"""
Retail Ledger Entry Point

Loads the ledger files from the configured data directory, applies one month
of interest accrual to every account and writes the files back.
"""

import argparse
import sys

from retail_ledger.bank import Bank
from retail_ledger.config import get_config
from retail_ledger.logging_config import setup_logging
from retail_ledger.storage import LedgerFileStore


def main(argv=None) -> int:
    config = get_config()

    parser = argparse.ArgumentParser(description="Run monthly processing on the retail ledger")
    parser.add_argument("--data-dir", default=config.data_dir, help="Directory holding the ledger files")
    parser.add_argument("--dry-run", action="store_true", help="Accrue without saving")
    args = parser.parse_args(argv)

    logger = setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)

    bank = Bank(config=config, store=LedgerFileStore(args.data_dir, config))
    bank.load()
    recorded = bank.run_monthly_processing()

    if not args.dry_run:
        bank.save()
    logger.info(f"Monthly processing changed {len(recorded)} accounts")
    return 0


if __name__ == "__main__":
    sys.exit(main())

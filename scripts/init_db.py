#!/usr/bin/env python3
"""
Create all tables and the bank transfer settings row.
Run from the project root: python -m scripts.init_db
or: PYTHONPATH=. python scripts/init_db.py
"""
import os
import sys

# project root on PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gympay.db.init_db import create_tables
from gympay.db.session import SessionLocal, engine
from gympay.services.bank_transfer.settings_service import BankTransferSettingsService


def main():
    create_tables(engine)
    db = SessionLocal()
    try:
        BankTransferSettingsService(db).get_or_create()
        db.commit()
        effective = BankTransferSettingsService(db).get_effective()
    finally:
        db.close()
    print("Tables created.")
    if not effective["enabled"]:
        print("Bank transfers are disabled until BANK_ACCOUNT_NUMBER or the settings row is filled in.")


if __name__ == "__main__":
    main()

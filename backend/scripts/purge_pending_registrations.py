"""CLI script to delete expired pending registrations from the backend DB.

Usage: python scripts/purge_pending_registrations.py

Pending rows past their expiration can never be verified; this is meant
to be run periodically (cron or similar) to keep the table small.
"""
import logging
import pathlib
import sys
# Ensure `backend/` is on sys.path so `tisa` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from tisa.database import engine, create_db_and_tables
from tisa import services


def main() -> int:
    """Purge expired rows and print how many were removed."""
    create_db_and_tables()
    with Session(engine) as session:
        removed = services.AuthService(session).purge_expired()
    print(f'Removed {removed} expired pending registrations')
    return removed


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    main()

"""CLI for database setup and periodic maintenance.

Usage:
    python scripts/seed_db.py seed
    python scripts/seed_db.py dormant
    python scripts/seed_db.py minors
    python scripts/seed_db.py cleanup-otps
"""
import argparse

from sqlmodel import Session

from onlinebank.banking import AccountService
from onlinebank.database import create_db_and_tables, engine
from onlinebank.logging_config import setup_logging
from onlinebank.seed import seed_database
from onlinebank.services import OtpService


def main(command: str):
    """Run one setup or maintenance command and print what it changed."""
    setup_logging()
    create_db_and_tables()
    with Session(engine) as session:
        if command == "seed":
            result = seed_database(session)
            print(f"Branches created: {result['branches']}, admin created: {result['admin']}, "
                  f"sample account created: {result['account']}")
        elif command == "dormant":
            print(f"Accounts marked dormant: {AccountService(session).update_dormant()}")
        elif command == "minors":
            print(f"Minor accounts moved to major: {AccountService(session).transition_minor_to_major()}")
        elif command == "cleanup-otps":
            print(f"Expired OTPs removed: {OtpService(session).cleanup_expired()}")


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('command', choices=['seed', 'dormant', 'minors', 'cleanup-otps'])
    args = parser.parse_args()
    main(args.command)

"""
Seed the chatbot database.

    python seed_db.py               # plans + demo businesses (wipes chat data)
    python seed_db.py --plans-only  # only insert missing plans
"""
import argparse

from dotenv import load_dotenv
from sqlalchemy.orm import Session

from bizchat.db.session import SessionLocal, init_db
from bizchat.seed.seed_data import seed_db, seed_plans

# Load environment variables
load_dotenv()


def main():
    parser = argparse.ArgumentParser(description="Seed the BizChat database.")
    parser.add_argument("--plans-only", action="store_true", help="only insert missing plans, keep all other data")
    args = parser.parse_args()

    print("Initializing database...")
    init_db()

    db: Session = SessionLocal()
    try:
        if args.plans_only:
            print("Seeding plans...")
            seed_plans(db)
        else:
            print("Seeding database...")
            seed_db(db)
    finally:
        db.close()
    print("Done!")


if __name__ == "__main__":
    main()

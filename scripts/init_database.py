# scripts/init_database.py

"""
Database initialization script.
Creates every table of the reconciliation schema:
- sponsors, leaders and canonical voters
- captures, variants, assignments and incidents
- archive tables and the action log
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import inspect  # noqa: E402

from app import app  # noqa: E402
from canvass_app.models import db  # noqa: E402


def init_database():
    """Create all tables and report what exists afterwards"""
    with app.app_context():
        print("Creating database tables...")
        db.create_all()
        tables = sorted(inspect(db.engine).get_table_names())
        print(f"Database tables ready ({len(tables)}):")
        for table in tables:
            print(f"  - {table}")

        print("\nNext steps:")
        print("  1. Seed demo data: python scripts/seed_database.py")
        print("  2. Or load a capture export: flask captures ingest --file capturas.csv --actor <id>")


if __name__ == "__main__":
    init_database()

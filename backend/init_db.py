#!/usr/bin/env python3
# backend/init_db.py
"""
Database initialization script.

This script can be run from any directory:
    python backend/init_db.py
    cd backend && python init_db.py

Creates the ledger, market data, asset and preference tables on the
database named by DATABASE_URL.
"""
import sys
from pathlib import Path

# Add the backend directory to Python path so 'app' package is importable
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

from app.config import settings
from app.database import create_tables, engine
from app.models import Base


def init_db() -> None:
    """Create all database tables defined in models."""
    print(f"Creating database tables ({settings.environment})...")
    create_tables(engine)
    print(f"Tables ready: {', '.join(sorted(Base.metadata.tables))}")


if __name__ == "__main__":
    init_db()

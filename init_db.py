#!/usr/bin/env python3
"""Initialize the key/value tables used by the game store."""
from sqlalchemy import inspect, text

from database import DATABASE_URL, engine
from models import Base


def main():
    print("Initializing database...")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print(f"✓ Connected to {engine.dialect.name} ({DATABASE_URL.split('@')[-1]})")
    except Exception as e:
        print(f"✗ Database connection failed: {e}")
        return False

    try:
        Base.metadata.create_all(bind=engine)
        print("✓ Database tables created")

        tables = sorted(inspect(engine).get_table_names())
        print(f"\nTables ({len(tables)}):")
        for table in tables:
            print(f"  - {table}")
    except Exception as e:
        print(f"✗ Failed to create tables: {e}")
        return False

    print("\n✓ Database initialization complete!")
    return True


if __name__ == "__main__":
    success = main()
    exit(0 if success else 1)

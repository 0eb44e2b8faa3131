#!/usr/bin/env python
"""Database initialization script for the lending backend.

Creates all tables from the SQLAlchemy models. Run once before starting
the application for the first time.

Usage:
    python init_db.py
"""

import os
import sys
from sqlalchemy.exc import SQLAlchemyError
from lendit import create_app, db


def init_database():
    """Initialize the database by creating all tables."""
    config_name = os.getenv('FLASK_ENV', 'development')
    app = create_app(config_name)

    print(f"\n{'='*60}")
    print(f"Database Initialization for {config_name.upper()} Environment")
    print(f"{'='*60}\n")

    with app.app_context():
        try:
            print("Creating database tables...")
            print(f"Database URI: {app.config['SQLALCHEMY_DATABASE_URI']}\n")

            db.create_all()
        except SQLAlchemyError as e:
            print(f"❌ Error creating database: {type(e).__name__}: {e}\n")
            return False

        tables_info = [
            ("users", "User accounts, premium tier and ratings"),
            ("items", "Items offered for lending"),
            ("transactions", "Borrow requests and their lifecycle"),
            ("reviews", "Lender and borrower reviews"),
            ("subscriptions", "Premium subscription periods"),
        ]

        print("Created tables:")
        for table_name, description in tables_info:
            print(f"  ✓ {table_name:<25} - {description}")

        print(f"\n{'='*60}")
        print("✅ Database initialization complete!")
        print(f"{'='*60}\n")
        print("Next steps:")
        print("  1. Start the Flask server: python wsgi.py")
        print("  2. Register a user: POST /api/auth/register")
        print("\n")

        return True


if __name__ == '__main__':
    success = init_database()
    sys.exit(0 if success else 1)

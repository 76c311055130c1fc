# scripts/setup/init_db.py
"""
Initialize database — creates all tables and optionally seeds a super admin.
Run once before first launch, or after adding new models.
Usage:
    python scripts/setup/init_db.py
    python scripts/setup/init_db.py --admin-email root@tamvems.id --admin-password secret123 --admin-name Root
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from app.database import create_tables, engine, SessionLocal
from app.config import settings
from app.models.user import User, UserRole
from app.services.user_service import hash_password, find_by_email
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError


def seed_super_admin(email: str, password: str, name: str):
    db = SessionLocal()
    try:
        if find_by_email(db, email):
            print(f"ℹ️  {email} already exists, not seeded")
            return
        db.add(User(
            email=email.lower(),
            name=name,
            password_hash=hash_password(password),
            role=UserRole.SUPER_ADMIN,
            is_active=True,
        ))
        db.commit()
        print(f"✅ Super admin {email} created")
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Create TamVems tables")
    parser.add_argument("--admin-email", help="Seed a SUPER_ADMIN with this email")
    parser.add_argument("--admin-password", help="Password for the seeded admin")
    parser.add_argument("--admin-name", default="Super Admin")
    args = parser.parse_args()

    print("🗄️  TamVems DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    # Test connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except SQLAlchemyError as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nMake sure PostgreSQL is running:")
        print("  sudo systemctl start postgresql")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()
    print("✅ All tables created")

    tables = sorted(inspect(engine).get_table_names())
    print(f"\n📊 Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    if args.admin_email:
        if not args.admin_password:
            parser.error("--admin-password is required with --admin-email")
        seed_super_admin(args.admin_email, args.admin_password, args.admin_name)

    print("\n🎉 Database ready! You can now start the backend:")
    print("   uvicorn app.main:app --host 0.0.0.0 --port 8080 --reload")


if __name__ == "__main__":
    main()

"""
Seed roles, the admin account, incident categories and default shifts.

Usage:
  SEED_ADMIN_PASSWORD=... python scripts/seed_data.py

This script is idempotent: running it multiple times leaves existing rows untouched.
"""

from datetime import time

from guardops.config import settings
from guardops.db import Base, engine, session_scope
from guardops.models.models import IncidentCategory, Shift, User
from guardops.services.users import build_user, ensure_roles


CATEGORIES = [
    {"name": "Break-in", "description": "Forced or unauthorised entry", "priority": "high"},
    {"name": "Suspicious Activity", "description": "Loitering or unusual behaviour near a site", "priority": "medium"},
    {"name": "Vandalism", "description": "Damage to client property", "priority": "medium"},
    {"name": "Medical Emergency", "description": "Injury or illness on site", "priority": "high"},
    {"name": "Fire", "description": "Fire, smoke or alarm activation", "priority": "high"},
    {"name": "Theft", "description": "Goods or property stolen", "priority": "high"},
    {"name": "Maintenance Issue", "description": "Broken lights, gates or locks", "priority": "low"},
]

SHIFTS = [
    ("Morning", time(6, 0), time(14, 0)),
    ("Afternoon", time(14, 0), time(22, 0)),
    ("Night", time(22, 0), time(6, 0)),
    ("Weekend Day", time(8, 0), time(20, 0)),
    ("Weekend Night", time(20, 0), time(8, 0)),
]


def seed_admin(db):
    if db.query(User.id).filter(User.username == "admin").first():
        print("Admin user already exists")
        return
    if not settings.seed_admin_password:
        print("SEED_ADMIN_PASSWORD not set, skipping admin user")
        return
    build_user(
        db,
        username="admin",
        password=settings.seed_admin_password,
        role_name="admin",
        first_name="System",
        last_name="Administrator",
    )
    print("Created admin user")


def seed_categories(db):
    for data in CATEGORIES:
        if db.query(IncidentCategory.id).filter(IncidentCategory.name == data["name"]).first():
            continue
        db.add(IncidentCategory(**data))
        print(f"  + category {data['name']}")


def seed_shifts(db):
    for name, start, end in SHIFTS:
        if db.query(Shift.id).filter(Shift.name == name).first():
            continue
        db.add(Shift(name=name, start_time=start, end_time=end))
        print(f"  + shift {name} {start:%H:%M}-{end:%H:%M}")


def main():
    Base.metadata.create_all(bind=engine)
    with session_scope() as db:
        ensure_roles(db)
        seed_admin(db)
        seed_categories(db)
        seed_shifts(db)
    print("Seed data applied successfully!")


if __name__ == "__main__":
    main()

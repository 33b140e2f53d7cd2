"""
Seed the local database with a demo branch: staff, bodyshop vehicles and a few todos.

Usage:
  python scripts/seed_demo_data.py

Idempotent: users are matched by PIN and vehicles by plate, so running it
twice does not duplicate anything.
"""

from branchboard.config import settings
from branchboard.db import SessionLocal, Base, engine
from branchboard.deps import build_lifecycle
from branchboard.schemas.bodyshop import VehicleCreate
from branchboard.services.clock import CivilClock
from branchboard.services.repository import Repository
from branchboard.services.users import UserService


STAFF = [
    {"initials": "AK", "pin": "1111", "roles": ["Counter"]},
    {"initials": "JS", "pin": "2222", "roles": ["Driver"], "max_daily_hours": 8, "hourly_rate": 14.5},
    {"initials": "MW", "pin": "3333", "roles": ["Driver"], "max_daily_hours": 6, "hourly_rate": 14.5},
    {"initials": "LB", "pin": "4444", "roles": ["Counter", "Driver"], "max_daily_hours": 4},
]

VEHICLES = [
    {"plate_city": "M", "plate_letters": "AB", "plate_numbers": "1234", "name": "VW Golf"},
    {"plate_city": "M", "plate_letters": "EV", "plate_numbers": "77", "is_ev": True, "name": "Tesla Model 3"},
    {"license_plate": "FS - XY 902", "name": "Mercedes Sprinter"},
]

TODOS = [
    {"title": "Check key box", "assigned_to": ["Counter"], "is_recurring": True, "priority": 1},
    {"title": "Wash bay tidy-up", "assigned_to": ["Driver"], "is_recurring": True},
]


def _noop(_category: str) -> None:
    return None


def main():
    Base.metadata.create_all(bind=engine)
    clock = CivilClock(settings.tz_default)
    session = SessionLocal()
    try:
        repo = Repository(session, clock)
        users = UserService(repo, _noop)
        users.seed_branch_manager(settings.branch_manager_pin, settings.branch_manager_initials)
        for staff in STAFF:
            if repo.get_user_by_pin(staff["pin"]) is None:
                users.create_user(staff)

        lifecycle = build_lifecycle(repo, _noop)
        existing = {v.license_plate for v in repo.list_vehicles()}
        for vehicle in VEHICLES:
            plate = VehicleCreate.model_validate(vehicle).license_plate
            if plate not in existing:
                lifecycle.create_vehicle(vehicle)

        titles = {t.title for t in repo.list_todos()}
        for todo in TODOS:
            if todo["title"] not in titles:
                lifecycle.create_todo(todo)
        print("Seed complete.")
    finally:
        session.close()


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Demo Project Seed Script
Creates a user, a sample aluminium project with one measurement per stage,
and prints a bearer token for that user.

Usage:
    python -m scripts.seed_demo_project <email> [--admin]

Example:
    python -m scripts.seed_demo_project analyst@example.com
"""
import sys
import os
from uuid import uuid4

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from lca_engine.database import SessionLocal, init_db
from lca_engine.models.db_models import UserDB, ProjectDB, UserRole, DEFAULT_USER_ROLE
from lca_engine.models.lca import Measurement
from lca_engine.services.lca import SqlAlchemyLcaRepository
from lca_engine.auth import create_access_token

# stage, energy MJ, CO2 kg, water L, waste kg, recycled %, recyclability %
SAMPLE_MEASUREMENTS = [
    ("extraction", 5200.0, 640.0, 2100.0, 310.0, 12.0, 40.0),
    ("processing", 8800.0, 1250.0, 4300.0, 120.0, 35.0, 55.0),
    ("manufacturing", 3100.0, 420.0, 900.0, 65.0, 48.0, 70.0),
    ("use", 150.0, 20.0, 40.0, 2.0, 0.0, 0.0),
    ("end_of_life", 600.0, 75.0, 120.0, 210.0, 60.0, 85.0),
]


def seed_demo_project(email: str, admin: bool = False) -> bool:
    """Create (or reuse) a user and attach a demo project."""
    init_db()

    db: Session = SessionLocal()
    try:
        user = db.query(UserDB).filter(UserDB.email == email).first()
        if user is None:
            user = UserDB(
                id=str(uuid4()),
                email=email,
                full_name=email.split("@")[0],
                role=UserRole.ADMIN.value if admin else DEFAULT_USER_ROLE.value,
            )
            db.add(user)
            print(f"User created: {email}")
        elif admin and user.role != UserRole.ADMIN.value:
            user.role = UserRole.ADMIN.value
            print(f"Upgraded existing user '{email}' to admin role.")

        project = ProjectDB(
            id=str(uuid4()),
            name="Demo Aluminium Extrusion",
            description="Seeded sample project",
            metal_type="aluminium",
            created_by=user.id,
        )
        db.add(project)
        db.flush()

        SqlAlchemyLcaRepository(db).add_measurements(project.id, [
            Measurement(
                stage=stage,
                energy_consumption=energy,
                emissions_co2=co2,
                water_usage=water,
                waste_generated=waste,
                recycled_content=recycled,
                recyclability=recyclability,
            )
            for stage, energy, co2, water, waste, recycled, recyclability in SAMPLE_MEASUREMENTS
        ])
        db.commit()

        print(f"Project created: {project.id}")
        print(f"  Measurements: {len(SAMPLE_MEASUREMENTS)}")
        print(f"  Token: {create_access_token(user.id, user.email, user.role)}")
        return True

    except Exception as e:
        print(f"Error seeding demo project: {e}")
        db.rollback()
        return False
    finally:
        db.close()


def main():
    args = sys.argv[1:]
    if not args or len(args) > 2 or (len(args) == 2 and args[1] != "--admin"):
        print(__doc__)
        sys.exit(1)

    email = args[0]
    if "@" not in email:
        print("Error: Invalid email format.")
        sys.exit(1)

    success = seed_demo_project(email, admin="--admin" in args)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()

"""
Seed the local database with two demo crews, a project and a reclamation.

Usage:
  python scripts/seed_demo_data.py

This script is idempotent: crews are looked up by unique_number and the
project/reclamation are only created when the demo firm has none yet.
Every record goes through the services so the ledgers are populated too.
"""

import uuid
from datetime import datetime, timedelta

from installhub.db import SessionLocal, Base, engine
from installhub.models.models import Crew, Project
from installhub.services import projects as project_service
from installhub.services import reclamations as reclamation_service
from installhub.services import roster


DEMO_FIRM_ID = uuid.UUID("00000000-0000-0000-0000-00000000f001")
SEED_ACTOR_ID = uuid.UUID("00000000-0000-0000-0000-00000000a001")


def ensure_crew(session, unique_number: str, name: str, members: list[tuple[str, str, str, str]]) -> Crew:
    crew = session.query(Crew).filter(Crew.unique_number == unique_number, Crew.firm_id == DEMO_FIRM_ID).first()
    if crew:
        return crew
    crew = roster.create_crew(
        session,
        {"firm_id": DEMO_FIRM_ID, "name": name, "unique_number": unique_number, "leader_name": f"{members[0][0]} {members[0][1]}"},
        SEED_ACTOR_ID,
    )
    for first_name, last_name, member_number, role in members:
        roster.add_member(
            session,
            crew.id,
            {"first_name": first_name, "last_name": last_name, "unique_number": member_number, "role": role},
            SEED_ACTOR_ID,
        )
    return crew


def main():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        north = ensure_crew(session, "BR-0001", "North Roofs", [
            ("Lena", "Brandt", "WRK-0001", "leader"),
            ("Tom", "Keller", "WRK-0002", "worker"),
        ])
        south = ensure_crew(session, "BR-0002", "South Electric", [
            ("Mira", "Vogel", "WRK-0003", "leader"),
            ("Jonas", "Hart", "WRK-0004", "specialist"),
        ])

        if session.query(Project).filter(Project.firm_id == DEMO_FIRM_ID).first():
            print("Seed skipped: demo project already exists.")
            return

        today = datetime.utcnow().date()
        project = project_service.create_project(
            session,
            {
                "firm_id": DEMO_FIRM_ID,
                "installation_person_first_name": "Karl",
                "installation_person_last_name": "Huber",
                "installation_person_address": "Lindenweg 4",
                "equipment_expected_date": today + timedelta(days=3),
            },
            SEED_ACTOR_ID,
        )
        project_service.update_status(session, project.id, "equipment_waiting", SEED_ACTOR_ID)
        project_service.assign_crew(session, project.id, north.id, SEED_ACTOR_ID)
        project_service.update_project_fields(
            session, project.id, {"equipment_arrived_date": today, "work_start_date": today + timedelta(days=1)}, SEED_ACTOR_ID
        )
        project_service.update_status(session, project.id, "work_completed", SEED_ACTOR_ID)
        reclamation_service.create_reclamation(
            session,
            project.id,
            firm_id=DEMO_FIRM_ID,
            description="Cable duct on the east wall is loose",
            deadline=today + timedelta(days=14),
            crew_id=south.id,
            actor_id=SEED_ACTOR_ID,
        )
        print(f"Seed completed: project {project.id} with crews {north.name} and {south.name}.")
    finally:
        session.close()


if __name__ == "__main__":
    main()

"""Initialize the database - creates all tables including the version control tables.

Usage:
  python scripts/init_db.py                  # create missing tables
  python scripts/init_db.py --drop           # drop every table first, then recreate
  python scripts/init_db.py --seed           # also add demo users and a committed demo project
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from flowvcs.database import SessionLocal, engine, Base
import flowvcs.models  # noqa: F401 - registers all models

from flowvcs.models.user import User
from flowvcs.models.project import Project, ProjectMember
from flowvcs.services import branch_service, commit_service, file_service

DEMO_BPMN = (
    '<bpmn:definitions id="order-definitions">'
    '<bpmn:process id="order-process"><bpmn:startEvent id="start" /></bpmn:process>'
    "</bpmn:definitions>"
)
DEMO_DMN = '<definitions id="discount-rules" name="Discount" />'


def init_db(drop: bool = False):
    if drop:
        print("Dropping all database tables...")
        Base.metadata.drop_all(bind=engine)
    print("Creating all database tables...")
    Base.metadata.create_all(bind=engine)
    print("Database initialized successfully.")


def seed_demo():
    db = SessionLocal()
    try:
        if db.query(User).count() > 0:
            print("Database already seeded. Skipping.")
            return

        users = [
            User(emp_id="admin001", name="관리자", role="admin", email="admin@company.com"),
            User(emp_id="user001", name="프로세스 설계자", role="user", email="user1@company.com"),
            User(emp_id="user002", name="프로세스 검토자", role="user", email="user2@company.com"),
        ]
        db.add_all(users)
        db.flush()

        project = Project(project_name="주문 처리 프로세스", owner_id=users[1].user_id)
        db.add(project)
        db.flush()
        db.add(ProjectMember(project_id=project.project_id, user_id=users[2].user_id, role="editor"))
        db.commit()

        branch_service.init_project(db, project.project_id, users[1].user_id)
        file_service.create_file(
            db, project.project_id, name="order", doc_type="bpmn", xml=DEMO_BPMN, created_by=users[1].user_id
        )
        file_service.create_file(
            db, project.project_id, name="discount", doc_type="dmn", xml=DEMO_DMN, created_by=users[1].user_id
        )
        db.commit()

        commit, file_count = commit_service.commit_live_files(
            db, project.project_id, users[1].user_id, "Initial process model"
        )
        print(f"  project_id: {project.project_id}")
        print(f"  draft commit_id: {commit.commit_id} ({file_count} files)")
        print("Seed data inserted successfully.")
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--drop", action="store_true", help="Drop all tables before creating them")
    parser.add_argument("--seed", action="store_true", help="Insert demo users and a committed demo project")
    args = parser.parse_args()

    init_db(drop=args.drop)
    if args.seed:
        seed_demo()


if __name__ == "__main__":
    main()

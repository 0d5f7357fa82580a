import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from flowvcs.database import Base, get_db
from flowvcs.main import app
from flowvcs.models.user import User
from flowvcs.models.project import Project, ProjectMember
from flowvcs.services import branch_service

TEST_DB_URL = "sqlite:///./test_flowvcs.db"

engine = create_engine(TEST_DB_URL, connect_args={"check_same_thread": False})
TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

BPMN_V1 = '<bpmn:definitions id="d1"><bpmn:process id="p1" /></bpmn:definitions>'
BPMN_V2 = '<bpmn:definitions id="d1"><bpmn:process id="p1"><bpmn:startEvent id="s" /></bpmn:process></bpmn:definitions>'
DMN_V1 = '<definitions id="dmn1" name="Discount" />'


def override_get_db():
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def other_db():
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def seed_users(db):
    users = {
        "admin": User(emp_id="admin001", name="Admin", role="admin"),
        "owner": User(emp_id="user001", name="Owner", role="user"),
        "member": User(emp_id="user002", name="Member", role="user"),
        "outsider": User(emp_id="user003", name="Outsider", role="user"),
    }
    for u in users.values():
        db.add(u)
    db.commit()
    for u in users.values():
        db.refresh(u)
    return users


@pytest.fixture
def seed_project(db, seed_users):
    project = Project(project_name="주문 프로세스", owner_id=seed_users["owner"].user_id)
    db.add(project)
    db.commit()
    db.refresh(project)
    db.add(ProjectMember(project_id=project.project_id, user_id=seed_users["member"].user_id, role="editor"))
    db.commit()
    branch_service.init_project(db, project.project_id, seed_users["owner"].user_id)
    return project


def get_token(client, emp_id: str) -> str:
    resp = client.post("/api/auth/login", json={"emp_id": emp_id})
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


def auth_headers(client, emp_id: str) -> dict:
    return {"Authorization": f"Bearer {get_token(client, emp_id)}"}

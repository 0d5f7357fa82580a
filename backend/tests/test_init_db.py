"""DB 초기화 스크립트(--drop / --seed) 테스트입니다."""

import pytest

from flowvcs.models.branch import Branch
from flowvcs.models.commit import Commit
from flowvcs.models.project import Project
from flowvcs.models.user import User
from scripts import init_db as init_db_script
from tests.conftest import TestingSession, engine


@pytest.fixture
def script(monkeypatch):
    monkeypatch.setattr(init_db_script, "SessionLocal", TestingSession)
    monkeypatch.setattr(init_db_script, "engine", engine)
    return init_db_script


def test_seed_creates_committed_demo_project(script, db):
    script.seed_demo()

    assert sorted(u.emp_id for u in db.query(User).all()) == ["admin001", "user001", "user002"]
    project = db.query(Project).one()
    kinds = sorted(b.kind for b in db.query(Branch).filter(Branch.project_id == project.project_id).all())
    assert kinds == ["draft", "main"]
    commits = db.query(Commit).filter(Commit.project_id == project.project_id).all()
    assert [c.message for c in commits] == ["Initial process model"]
    assert len(commits[0].snapshots) == 2


def test_seed_skips_populated_database(script, db, seed_users):
    script.seed_demo()
    assert db.query(User).count() == len(seed_users)
    assert db.query(Project).count() == 0


def test_drop_recreates_empty_tables(script, db, seed_project):
    db.close()
    script.init_db(drop=True)
    assert db.query(User).count() == 0
    assert db.query(Project).count() == 0

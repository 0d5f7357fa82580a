"""커밋 엔진(전체 스냅샷, 변경 분류, head 전진, 낙관적 동시성) 테스트입니다."""

import pytest

from flowvcs.models.branch import Branch
from flowvcs.models.commit import (
    CHANGE_ADDED,
    CHANGE_DELETED,
    CHANGE_MODIFIED,
    CHANGE_UNCHANGED,
    SOURCE_DEPLOY,
    Commit,
)
from flowvcs.services import branch_service, commit_service, diff_service, file_service, working_tree_service
from flowvcs.services.vcs_errors import CommitConflict, VcsInvalidState, VcsNotFound
from tests.conftest import BPMN_V1, BPMN_V2, DMN_V1


def _changes(db, commit_id):
    return {s.name: s.change_type for s in commit_service.get_commit_snapshots(db, commit_id)}


def test_commit_classifies_changes_against_parent(db, seed_project, seed_users):
    uid = seed_users["owner"].user_id
    branch_id = branch_service.get_user_branch(db, seed_project.project_id, uid).branch_id

    a = working_tree_service.upsert_file(db, branch_id, name="a", doc_type="bpmn", content=BPMN_V1)
    c1 = commit_service.create_commit(db, branch_id, uid, "first")
    assert c1.parent_commit_id is None
    assert _changes(db, c1.commit_id) == {"a": CHANGE_ADDED}

    working_tree_service.upsert_file(db, branch_id, name="a", doc_type="bpmn", content=BPMN_V2)
    working_tree_service.upsert_file(db, branch_id, name="b", doc_type="dmn", content=DMN_V1)
    c2 = commit_service.create_commit(db, branch_id, uid, "second")
    assert c2.parent_commit_id == c1.commit_id
    assert _changes(db, c2.commit_id) == {"a": CHANGE_MODIFIED, "b": CHANGE_ADDED}

    working_tree_service.remove_file(db, a.working_file_id)
    c3 = commit_service.create_commit(db, branch_id, uid, "third")
    assert _changes(db, c3.commit_id) == {"a": CHANGE_DELETED, "b": CHANGE_UNCHANGED}

    deleted = [s for s in commit_service.get_commit_snapshots(db, c3.commit_id) if s.name == "a"][0]
    assert deleted.content_blob_id is None
    assert db.get(Branch, branch_id).head_commit_id == c3.commit_id


def test_snapshot_set_is_union_of_parent_and_working_tree(db, seed_project, seed_users):
    uid = seed_users["owner"].user_id
    branch_id = branch_service.get_user_branch(db, seed_project.project_id, uid).branch_id
    a = working_tree_service.upsert_file(db, branch_id, name="a", doc_type="bpmn", content=BPMN_V1)
    b = working_tree_service.upsert_file(db, branch_id, name="b", doc_type="bpmn", content=BPMN_V1)
    c1 = commit_service.create_commit(db, branch_id, uid, "first")

    working_tree_service.remove_file(db, b.working_file_id)
    c_new = working_tree_service.upsert_file(db, branch_id, name="c", doc_type="dmn", content=DMN_V1)
    c2 = commit_service.create_commit(db, branch_id, uid, "second")

    parent_ids = {s.working_file_id for s in commit_service.get_commit_snapshots(db, c1.commit_id)}
    tree_ids = {a.working_file_id, c_new.working_file_id}
    snapshot_ids = {s.working_file_id for s in commit_service.get_commit_snapshots(db, c2.commit_id)}
    assert snapshot_ids == parent_ids | tree_ids


def test_unchanged_checkpoint_commit_is_permitted(db, seed_project, seed_users):
    uid = seed_users["owner"].user_id
    main_id = branch_service.get_main_branch(db, seed_project.project_id).branch_id
    working_tree_service.upsert_file(db, main_id, name="a", doc_type="bpmn", content=BPMN_V1)
    commit_service.create_commit(db, main_id, uid, "first")

    checkpoint = commit_service.create_commit(db, main_id, uid, "Before deploy", source=SOURCE_DEPLOY, is_remote=True)
    assert set(_changes(db, checkpoint.commit_id).values()) == {CHANGE_UNCHANGED}
    assert checkpoint.source == SOURCE_DEPLOY
    assert checkpoint.is_remote is True
    assert checkpoint.is_auto is True


def test_empty_initial_commit_is_valid(db, seed_project, seed_users):
    uid = seed_users["owner"].user_id
    main_id = branch_service.get_main_branch(db, seed_project.project_id).branch_id
    commit = commit_service.create_commit(db, main_id, uid, "empty")
    assert commit.parent_commit_id is None
    assert commit_service.get_commit_snapshots(db, commit.commit_id) == []


def test_commit_hash_depends_only_on_snapshot_contents(db, seed_project, seed_users):
    uid = seed_users["owner"].user_id
    main_id = branch_service.get_main_branch(db, seed_project.project_id).branch_id
    working_tree_service.upsert_file(db, main_id, name="a", doc_type="bpmn", content=BPMN_V1)
    c1 = commit_service.create_commit(db, main_id, uid, "first")
    c2 = commit_service.create_commit(db, main_id, uid, "same tree, other message")
    working_tree_service.upsert_file(db, main_id, name="a", doc_type="bpmn", content=BPMN_V2)
    c3 = commit_service.create_commit(db, main_id, uid, "edited")

    assert c1.content_hash == c2.content_hash
    assert c3.content_hash != c2.content_hash


def test_chain_traversal_strictly_decreases_in_time(db, seed_project, seed_users):
    uid = seed_users["owner"].user_id
    main_id = branch_service.get_main_branch(db, seed_project.project_id).branch_id
    for index in range(5):
        working_tree_service.upsert_file(db, main_id, name="a", doc_type="bpmn", content=f"<v{index}/>")
        commit_service.create_commit(db, main_id, uid, f"c{index}")

    head = db.get(Branch, main_id).head_commit_id
    chain = list(diff_service.iter_branch_chain(db, head))
    assert len(chain) == 5
    assert len({c.commit_id for c in chain}) == 5
    assert chain[-1].parent_commit_id is None
    for newer, older in zip(chain, chain[1:]):
        assert newer.parent_commit_id == older.commit_id
        assert newer.created_at > older.created_at


def test_unknown_source_is_rejected(db, seed_project, seed_users):
    main_id = branch_service.get_main_branch(db, seed_project.project_id).branch_id
    with pytest.raises(VcsInvalidState):
        commit_service.create_commit(db, main_id, seed_users["owner"].user_id, "x", source="cron")


def test_commit_on_unknown_branch_raises_not_found(db, seed_users):
    with pytest.raises(VcsNotFound):
        commit_service.create_commit(db, 9999, seed_users["owner"].user_id, "x")


def _race_on_first_read(monkeypatch, other_db, branch_id, user_id):
    """첫 작업 트리 조회 시점에 다른 세션이 같은 브랜치에 먼저 커밋하도록 만든다."""
    original = working_tree_service.list_files
    state = {"raced": False}

    def racing_list_files(session, target_branch_id, *args, **kwargs):
        if not state["raced"]:
            state["raced"] = True
            commit_service.create_commit(other_db, branch_id, user_id, "concurrent save")
        return original(session, target_branch_id, *args, **kwargs)

    monkeypatch.setattr(working_tree_service, "list_files", racing_list_files)


def test_concurrent_commit_raises_conflict_without_partial_rows(db, other_db, seed_project, seed_users, monkeypatch):
    uid = seed_users["owner"].user_id
    branch_id = branch_service.get_user_branch(db, seed_project.project_id, uid).branch_id
    working_tree_service.upsert_file(db, branch_id, name="a", doc_type="bpmn", content=BPMN_V1)
    _race_on_first_read(monkeypatch, other_db, branch_id, uid)

    with pytest.raises(CommitConflict):
        commit_service.create_commit(db, branch_id, uid, "my save")

    commits = db.query(Commit).filter(Commit.branch_id == branch_id).all()
    assert [c.message for c in commits] == ["concurrent save"]
    assert db.get(Branch, branch_id).head_commit_id == commits[0].commit_id


def test_concurrent_commit_retry_keeps_both_commits(db, other_db, seed_project, seed_users, monkeypatch):
    uid = seed_users["owner"].user_id
    branch_id = branch_service.get_user_branch(db, seed_project.project_id, uid).branch_id
    working_tree_service.upsert_file(db, branch_id, name="a", doc_type="bpmn", content=BPMN_V1)
    _race_on_first_read(monkeypatch, other_db, branch_id, uid)

    mine = commit_service.create_commit_with_retry(db, branch_id, uid, "my save")

    other = db.query(Commit).filter(Commit.message == "concurrent save").one()
    assert mine.parent_commit_id == other.commit_id
    assert other.parent_commit_id is None
    head = db.get(Branch, branch_id).head_commit_id
    assert [c.commit_id for c in diff_service.iter_branch_chain(db, head)] == [mine.commit_id, other.commit_id]


def test_retry_exhausted_surfaces_retry_message(db, monkeypatch):
    calls = []

    def always_conflicts():
        calls.append(1)
        raise CommitConflict()

    with pytest.raises(CommitConflict) as exc_info:
        commit_service.run_with_conflict_retry(db, always_conflicts, retries=1)
    assert len(calls) == 2
    assert "please retry" in exc_info.value.detail
    assert exc_info.value.status_code == 409


def test_commit_live_files_stages_into_user_draft(db, seed_project, seed_users):
    pid = seed_project.project_id
    uid = seed_users["owner"].user_id
    file_service.create_file(db, pid, name="a", doc_type="bpmn", xml=BPMN_V1)
    file_service.create_file(db, pid, name="b", doc_type="dmn", xml=DMN_V1)
    db.commit()

    commit, count = commit_service.commit_live_files(db, pid, uid, "initial")
    draft = branch_service.get_user_branch(db, pid, uid)
    assert count == 2
    assert commit.branch_id == draft.branch_id
    assert draft.head_commit_id == commit.commit_id
    assert _changes(db, commit.commit_id) == {"a": CHANGE_ADDED, "b": CHANGE_ADDED}


def test_commit_has_file_ignores_unchanged_snapshots(db, seed_project, seed_users):
    uid = seed_users["owner"].user_id
    main_id = branch_service.get_main_branch(db, seed_project.project_id).branch_id
    a = working_tree_service.upsert_file(db, main_id, name="a", doc_type="bpmn", content=BPMN_V1)
    c1 = commit_service.create_commit(db, main_id, uid, "first")
    c2 = commit_service.create_commit(db, main_id, uid, "checkpoint")

    assert commit_service.commit_has_file(db, c1.commit_id, a.working_file_id) is True
    assert commit_service.commit_has_file(db, c2.commit_id, a.working_file_id) is False


def test_checkpoint_project_commits_live_state_on_main(db, seed_project, seed_users):
    pid = seed_project.project_id
    uid = seed_users["owner"].user_id
    assert commit_service.checkpoint_project(db, pid, uid, "Before push") is None

    file_service.create_file(db, pid, name="a", doc_type="bpmn", xml=BPMN_V1)
    db.commit()
    checkpoint = commit_service.checkpoint_project(db, pid, uid, "Before deploy", source=SOURCE_DEPLOY, is_remote=True)

    main = branch_service.get_main_branch(db, pid)
    assert checkpoint.branch_id == main.branch_id
    assert main.head_commit_id == checkpoint.commit_id
    assert checkpoint.source == SOURCE_DEPLOY
    assert _changes(db, checkpoint.commit_id) == {"a": CHANGE_ADDED}

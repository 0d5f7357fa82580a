"""draft → main 병합(게시) 엔진 테스트입니다."""

import pytest

from flowvcs.models.commit import CHANGE_DELETED, CHANGE_UNCHANGED, SOURCE_SYSTEM
from flowvcs.models.project import Project
from flowvcs.services import branch_service, commit_service, diff_service, file_service, merge_service
from flowvcs.services.vcs_errors import VcsInvalidState, VcsNotInitialized
from tests.conftest import BPMN_V1, BPMN_V2, DMN_V1


def _head_by_name(db, branch):
    db.refresh(branch)
    return {s.name: s for s in diff_service.load_head_snapshots(db, branch)}


def _publish(db, pid, uid):
    draft = branch_service.get_user_branch(db, pid, uid)
    return merge_service.merge_to_main(db, draft.branch_id, pid, uid)


def test_merge_applies_modified_draft_file_to_main(db, seed_project, seed_users):
    pid = seed_project.project_id
    uid = seed_users["owner"].user_id
    live = file_service.create_file(db, pid, name="a", doc_type="bpmn", xml=BPMN_V1)
    db.commit()
    commit_service.commit_live_files(db, pid, uid, "add a")
    assert _publish(db, pid, uid)["files_changed"] == 1

    file_service.update_file(db, live.file_id, {"xml": BPMN_V2})
    db.commit()
    commit_service.commit_live_files(db, pid, uid, "edit a")
    result = _publish(db, pid, uid)
    assert result["files_changed"] == 1

    main = branch_service.get_main_branch(db, pid)
    draft = branch_service.get_user_branch(db, pid, uid)
    assert main.head_commit_id == result["merge_commit_id"]
    assert _head_by_name(db, main)["a"].content_hash == _head_by_name(db, draft)["a"].content_hash

    merge_commit = commit_service.get_commit(db, result["merge_commit_id"])
    assert merge_commit.source == SOURCE_SYSTEM
    assert merge_commit.branch_id == main.branch_id


def test_repeated_merge_is_idempotent(db, seed_project, seed_users):
    pid = seed_project.project_id
    uid = seed_users["owner"].user_id
    file_service.create_file(db, pid, name="a", doc_type="bpmn", xml=BPMN_V1)
    file_service.create_file(db, pid, name="b", doc_type="dmn", xml=DMN_V1)
    db.commit()
    commit_service.commit_live_files(db, pid, uid, "initial")

    first = _publish(db, pid, uid)
    second = _publish(db, pid, uid)
    assert first["files_changed"] == 2
    assert second["files_changed"] == 0
    assert second["merge_commit_id"] != first["merge_commit_id"]

    changes = {s.change_type for s in commit_service.get_commit_snapshots(db, second["merge_commit_id"])}
    assert changes == {CHANGE_UNCHANGED}
    assert commit_service.get_commit(db, second["merge_commit_id"]).parent_commit_id == first["merge_commit_id"]


def test_merge_never_touches_draft_history(db, seed_project, seed_users):
    pid = seed_project.project_id
    uid = seed_users["owner"].user_id
    file_service.create_file(db, pid, name="a", doc_type="bpmn", xml=BPMN_V1)
    db.commit()
    commit, _ = commit_service.commit_live_files(db, pid, uid, "initial")
    draft_commits_before = [c.commit_id for c in commit_service.list_commits(db, commit.branch_id)]

    _publish(db, pid, uid)

    draft = branch_service.get_user_branch(db, pid, uid)
    assert draft.head_commit_id == commit.commit_id
    assert [c.commit_id for c in commit_service.list_commits(db, draft.branch_id)] == draft_commits_before


def test_merge_propagates_draft_deletion(db, seed_project, seed_users):
    pid = seed_project.project_id
    uid = seed_users["owner"].user_id
    file_service.create_file(db, pid, name="a", doc_type="bpmn", xml=BPMN_V1)
    b = file_service.create_file(db, pid, name="b", doc_type="bpmn", xml=BPMN_V1)
    db.commit()
    commit_service.commit_live_files(db, pid, uid, "initial")
    _publish(db, pid, uid)

    file_service.delete_file(db, b.file_id)
    db.commit()
    commit_service.commit_live_files(db, pid, uid, "remove b")
    result = _publish(db, pid, uid)

    assert result["files_changed"] == 1
    main_head = _head_by_name(db, branch_service.get_main_branch(db, pid))
    assert main_head["b"].change_type == CHANGE_DELETED
    assert main_head["b"].content_blob_id is None
    assert main_head["a"].change_type == CHANGE_UNCHANGED


def test_merge_keeps_main_only_files(db, seed_project, seed_users):
    pid = seed_project.project_id
    owner = seed_users["owner"].user_id
    member = seed_users["member"].user_id
    file_service.create_file(db, pid, name="a", doc_type="bpmn", xml=BPMN_V1)
    db.commit()
    commit_service.commit_live_files(db, pid, owner, "owner adds a")
    _publish(db, pid, owner)

    # member의 draft는 a를 모른 채 b만 커밋한다.
    b = file_service.create_file(db, pid, name="b", doc_type="dmn", xml=DMN_V1)
    db.commit()
    commit_service.commit_live_files(db, pid, member, "member adds b", file_ids=[b.file_id])

    result = _publish(db, pid, member)
    main_head = _head_by_name(db, branch_service.get_main_branch(db, pid))
    assert main_head["a"].content_blob_id is not None
    assert main_head["b"].content_blob_id is not None
    assert result["files_changed"] == 1


def test_merge_without_vcs_state_raises_not_initialized(db, seed_users):
    project = Project(project_name="미초기화", owner_id=seed_users["owner"].user_id)
    db.add(project)
    db.commit()
    with pytest.raises(VcsNotInitialized) as exc_info:
        merge_service.merge_to_main(db, 1, project.project_id, seed_users["owner"].user_id)
    assert exc_info.value.status_code == 404
    assert "not initialized" in exc_info.value.detail


def test_merge_rejects_main_as_source(db, seed_project, seed_users):
    main = branch_service.get_main_branch(db, seed_project.project_id)
    with pytest.raises(VcsInvalidState):
        merge_service.merge_to_main(db, main.branch_id, seed_project.project_id, seed_users["owner"].user_id)


def _live_names(db, branch):
    db.refresh(branch)
    return sorted(s.name for s in diff_service.load_head_snapshots(db, branch) if s.content_blob_id is not None)


def test_merge_renamed_file_updates_main_in_place(db, seed_project, seed_users):
    pid = seed_project.project_id
    uid = seed_users["owner"].user_id
    live = file_service.create_file(db, pid, name="a", doc_type="bpmn", xml=BPMN_V1)
    db.commit()
    commit_service.commit_live_files(db, pid, uid, "add a")
    _publish(db, pid, uid)

    file_service.update_file(db, live.file_id, {"name": "renamed"})
    db.commit()
    commit_service.commit_live_files(db, pid, uid, "rename a")
    result = _publish(db, pid, uid)

    main = branch_service.get_main_branch(db, pid)
    draft = branch_service.get_user_branch(db, pid, uid)
    assert result["files_changed"] == 1
    assert _live_names(db, main) == ["renamed"]
    assert _head_by_name(db, main)["renamed"].content_hash == _head_by_name(db, draft)["renamed"].content_hash
    assert main.head_commit_id == result["merge_commit_id"]


def test_same_live_file_in_two_drafts_merges_without_changes(db, seed_project, seed_users):
    pid = seed_project.project_id
    owner = seed_users["owner"].user_id
    member = seed_users["member"].user_id
    file_service.create_file(db, pid, name="a", doc_type="bpmn", xml=BPMN_V1)
    db.commit()
    commit_service.commit_live_files(db, pid, owner, "owner adds a")
    _publish(db, pid, owner)

    commit_service.commit_live_files(db, pid, member, "member picks up a")
    result = _publish(db, pid, member)

    assert result["files_changed"] == 0
    assert _live_names(db, branch_service.get_main_branch(db, pid)) == ["a"]


def test_merge_recreated_file_keeps_single_main_copy(db, seed_project, seed_users):
    pid = seed_project.project_id
    uid = seed_users["owner"].user_id
    old = file_service.create_file(db, pid, name="a", doc_type="bpmn", xml=BPMN_V1)
    db.commit()
    commit_service.commit_live_files(db, pid, uid, "add a")
    _publish(db, pid, uid)

    file_service.delete_file(db, old.file_id)
    file_service.create_file(db, pid, name="a", doc_type="bpmn", xml=BPMN_V2)
    db.commit()
    commit_service.commit_live_files(db, pid, uid, "recreate a")
    _publish(db, pid, uid)

    main = branch_service.get_main_branch(db, pid)
    assert _live_names(db, main) == ["a"]
    assert _head_by_name(db, main)["a"].content_hash == _head_by_name(
        db, branch_service.get_user_branch(db, pid, uid)
    )["a"].content_hash

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from memotrail.domain.errors import InvalidOperationError, NotFoundError
from memotrail.domain.intents import UpdateIntent
from memotrail.domain.models import MemoActionType, MemoStatus, VersionNode


async def create_q3_memo(service):
    return await service.create_memo("Q3 report", "draft body", "alice", "bob")


@pytest.mark.anyio
async def test_create_memo_builds_single_root(service):
    memo = await create_q3_memo(service)

    history = await service.get_history(memo.id)
    assert len(history) == 1
    root = history[0]
    assert memo.root_node_id == memo.current_node_id == root.id
    assert root.version == 1
    assert root.status is MemoStatus.SENT
    assert root.action_type is MemoActionType.CREATED
    assert root.action_by_id == "alice"
    assert root.parent_node_ids == ()


@pytest.mark.anyio
async def test_update_then_checkout_history(service):
    memo = await create_q3_memo(service)

    await service.append_version(memo.id, UpdateIntent(title="Q3 report v2"), "alice")

    history = await service.get_history(memo.id)
    assert [node.version for node in history] == [1, 2]
    assert (await service.get_node_at_version(memo.id, 1)).title == "Q3 report"
    latest = await service.get_current_node(memo.id)
    assert latest.title == "Q3 report v2"
    assert latest.content == "draft body"
    assert latest.action_type is MemoActionType.UPDATED
    assert latest.parent_node_ids == (history[0].id,)


@pytest.mark.anyio
async def test_update_shallow_merges_metadata(service):
    memo = await service.create_memo(
        "Budget", "numbers", "alice", "bob", metadata={"priority": "low", "dept": "finance"}
    )

    await service.update_memo(memo.id, "alice", metadata={"priority": "high", "due": "friday"})

    current = await service.get_current_node(memo.id)
    assert current.metadata_dict() == {"priority": "high", "dept": "finance", "due": "friday"}
    root = await service.get_root_node(memo.id)
    assert root.metadata_dict() == {"priority": "low", "dept": "finance"}


@pytest.mark.anyio
async def test_assignment_forces_in_progress(service):
    memo = await create_q3_memo(service)

    await service.assign_memo(memo.id, "carol", "bob", comment="please review")

    node = await service.get_current_node(memo.id)
    assert node.status is MemoStatus.IN_PROGRESS
    assert node.assigned_to_id == "carol"
    assert node.action_type is MemoActionType.ASSIGNED
    assert node.action_by_id == "bob"
    assert node.action_comment == "please review"


@pytest.mark.anyio
async def test_status_change_and_comment_inherit_other_fields(service):
    memo = await create_q3_memo(service)
    await service.assign_memo(memo.id, "carol", "bob", comment="take it")

    await service.change_status(memo.id, MemoStatus.COMPLETED, "carol")
    completed = await service.get_current_node(memo.id)
    await service.comment_memo(memo.id, "looks good", "alice")
    commented = await service.get_current_node(memo.id)

    assert completed.status is MemoStatus.COMPLETED
    assert completed.assigned_to_id == "carol"
    assert completed.action_comment is None
    assert commented.action_type is MemoActionType.COMMENTED
    assert commented.action_comment == "looks good"
    assert commented.status is MemoStatus.COMPLETED
    assert commented.title == completed.title


@pytest.mark.anyio
async def test_versions_are_monotonic_and_root_is_stable(service):
    memo = await create_q3_memo(service)

    for index in range(4):
        updated = await service.update_memo(memo.id, "alice", content=f"body {index}")
        assert updated.root_node_id == memo.root_node_id
        current = await service.get_node(memo.id, updated.current_node_id)
        assert current.memo_id == memo.id

    history = await service.get_history(memo.id)
    by_id = {node.id: node for node in history}
    for node in history[1:]:
        parents = [by_id[parent_id] for parent_id in node.parent_node_ids]
        assert node.version == 1 + max(parent.version for parent in parents)
    assert [node.version for node in history] == [1, 2, 3, 4, 5]


@pytest.mark.anyio
async def test_repeated_reads_are_identical(service):
    memo = await create_q3_memo(service)
    await service.update_memo(memo.id, "alice", title="again")

    first = await service.get_node_at_version(memo.id, 2)
    second = await service.get_node_at_version(memo.id, 2)

    assert first == second


@pytest.mark.anyio
async def test_navigation_boundaries(service):
    memo = await create_q3_memo(service)

    with pytest.raises(InvalidOperationError) as previous_error:
        await service.navigate_previous(memo.id, memo.root_node_id)
    with pytest.raises(InvalidOperationError) as next_error:
        await service.navigate_next(memo.id, memo.current_node_id)

    assert previous_error.value.code == "NO_PREVIOUS_VERSION"
    assert next_error.value.code == "NO_NEXT_VERSION"


@pytest.mark.anyio
async def test_navigation_next_and_previous_are_inverse(service):
    memo = await create_q3_memo(service)
    await service.update_memo(memo.id, "alice", title="v2")
    await service.update_memo(memo.id, "alice", title="v3")

    v2 = await service.navigate_next(memo.id, memo.root_node_id)
    back = await service.navigate_previous(memo.id, v2.id)

    assert v2.version == 2
    assert back.id == memo.root_node_id


@pytest.mark.anyio
async def test_checkout_by_timestamp(service, clock):
    start = clock.current
    memo = await create_q3_memo(service)
    await service.update_memo(memo.id, "alice", title="second")
    await service.update_memo(memo.id, "alice", title="third")
    t1, t2 = start, start + clock.step

    at_t2 = await service.checkout_by_timestamp(memo.id, t2)
    assert at_t2.title == "second"
    assert (await service.checkout_by_timestamp(memo.id, t2 + timedelta(milliseconds=500))).version == 2

    with pytest.raises(NotFoundError):
        await service.checkout_by_timestamp(memo.id, t1 - timedelta(milliseconds=1))


@pytest.mark.anyio
async def test_checkout_by_timestamp_accepts_naive_utc(service, clock):
    start = clock.current
    memo = await create_q3_memo(service)

    node = await service.checkout_by_timestamp(memo.id, start.replace(tzinfo=None))

    assert node.id == memo.root_node_id


@pytest.mark.anyio
async def test_checkout_by_action(service):
    memo = await create_q3_memo(service)
    await service.assign_memo(memo.id, "carol", "bob")
    await service.update_memo(memo.id, "carol", content="done")
    await service.assign_memo(memo.id, "dave", "carol")

    latest_assignment = await service.checkout_by_action(memo.id, MemoActionType.ASSIGNED)

    assert latest_assignment.version == 4
    assert latest_assignment.assigned_to_id == "dave"
    with pytest.raises(NotFoundError):
        await service.checkout_by_action(memo.id, MemoActionType.STATUS_CHANGED)


@pytest.mark.anyio
async def test_not_found_paths(service):
    memo = await create_q3_memo(service)

    with pytest.raises(NotFoundError) as missing_memo:
        await service.get_current_node("no-such-memo")
    with pytest.raises(NotFoundError) as missing_version:
        await service.get_node_at_version(memo.id, 9)
    with pytest.raises(NotFoundError):
        await service.revision_path(memo.id, from_version=9)
    with pytest.raises(NotFoundError):
        await service.update_memo("no-such-memo", "alice", title="x")
    with pytest.raises(NotFoundError):
        await service.navigate_next(memo.id, "no-such-node")

    assert missing_memo.value.code == "MEMO_NOT_FOUND"
    assert missing_version.value.code == "VERSION_NOT_FOUND"


@pytest.mark.anyio
async def test_forks_are_surfaced_not_prevented(service, store, clock):
    memo = await create_q3_memo(service)
    await service.update_memo(memo.id, "alice", title="mainline v2")
    await service.update_memo(memo.id, "alice", title="mainline v3")
    root = await service.get_root_node(memo.id)
    mainline_v2 = await service.get_node_at_version(memo.id, 2)
    # A sibling hanging off the root, as a deliberate fork would.
    fork = VersionNode(
        id="fork-node",
        memo_id=memo.id,
        version=4,
        title="fork",
        content=root.content,
        status=root.status,
        sender_id=root.sender_id,
        recipient_id=root.recipient_id,
        action_type=MemoActionType.UPDATED,
        action_by_id="mallory",
        parent_node_ids=(root.id,),
        created_at=clock(),
    )
    await store.put_node(fork)

    children = await service.find_children(memo.id, root.id)
    assert [child.id for child in children] == [mainline_v2.id, "fork-node"]
    assert await service.branch_count(memo.id, root.id) == 2

    path = await service.revision_path(memo.id)
    assert [node.title for node in path] == ["Q3 report", "mainline v2", "mainline v3", "fork"]

    timeline = await service.get_timeline(memo.id)
    flags = {entry.node_id: entry.has_branches for entry in timeline.timeline}
    assert flags[root.id] is True
    assert flags[mainline_v2.id] is False
    assert timeline.current_version == 3

    subtree = await service.get_revision_path(memo.id, from_version=2)
    assert [entry.title for entry in subtree.path] == ["mainline v2", "mainline v3"]


@pytest.mark.anyio
async def test_checkout_views_carry_navigation(service):
    memo = await create_q3_memo(service)
    await service.update_memo(memo.id, "alice", title="v2")
    updated = await service.update_memo(memo.id, "alice", title="v3")

    latest = await service.checkout_latest(memo.id)
    root = await service.checkout_root(memo.id)
    middle = await service.checkout_version(memo.id, 2)
    by_node = await service.checkout_node(memo.id, middle.id)
    forward = await service.navigate_next_view(memo.id, middle.id)
    backward = await service.navigate_previous_view(memo.id, middle.id)

    assert latest.id == updated.current_node_id
    assert latest.is_current_version and not latest.can_go_forward
    assert root.version == 1 and not root.can_go_backward
    assert middle.next_version_id == latest.id
    assert middle.previous_version_id == root.id
    assert middle.total_versions == 3
    assert by_node == middle
    assert forward.id == latest.id
    assert backward.id == root.id


@pytest.mark.anyio
async def test_compare_versions(service):
    memo = await create_q3_memo(service)
    await service.update_memo(memo.id, "alice", title="Q3 report v2")
    await service.assign_memo(memo.id, "carol", "bob")

    comparison = await service.compare_versions(memo.id, 1, 3)

    assert comparison.versions_between == 1
    assert comparison.differences.title_changed
    assert comparison.differences.status_changed
    assert comparison.differences.assignment_changed
    assert not comparison.differences.content_changed
    assert comparison.version_a.version == 1
    assert comparison.version_b.is_current_version

    same = await service.compare_versions(memo.id, 2, 2)
    assert not same.differences.any_changed
    assert same.versions_between == 0


@pytest.mark.anyio
async def test_list_user_memos(service):
    first = await create_q3_memo(service)
    second = await service.create_memo("Offsite", "plan", "dave", "erin")
    await service.assign_memo(second.id, "bob", "dave")
    await service.create_memo("Unrelated", "noise", "frank", "grace")

    items = await service.list_user_memos("bob")

    assert {item.id for item in items} == {first.id, second.id}
    assigned = next(item for item in items if item.id == second.id)
    assert assigned.current_version == 2
    assert assigned.total_versions == 2
    assert assigned.status is MemoStatus.IN_PROGRESS
    assert await service.list_user_memos("nobody") == []


@pytest.mark.anyio
async def test_pointer_into_another_memo_is_not_found(service, store, monkeypatch):
    memo = await create_q3_memo(service)
    other = await service.create_memo("Offsite", "plan", "dave", "erin")
    crossed = replace(memo, current_node_id=other.root_node_id, root_node_id=other.root_node_id)

    async def crossed_memo(memo_id):
        return crossed

    monkeypatch.setattr(store, "get_memo", crossed_memo)

    with pytest.raises(NotFoundError) as current_error:
        await service.get_current_node(memo.id)
    with pytest.raises(NotFoundError) as root_error:
        await service.get_root_node(memo.id)

    assert current_error.value.code == "NODE_NOT_FOUND"
    assert root_error.value.code == "NODE_NOT_FOUND"

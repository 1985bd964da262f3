from __future__ import annotations

from datetime import datetime, timedelta, timezone

from memotrail.domain.models import Memo, MemoActionType, MemoStatus, VersionNode
from memotrail.services.timeline import build_revision_path, build_timeline
from memotrail.services.version_graph import VersionGraph
from memotrail.services.view_builder import build_memo_view

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def _node(node_id: str, version: int, parents: tuple[str, ...] = ()) -> VersionNode:
    return VersionNode(
        id=node_id,
        memo_id="memo-1",
        version=version,
        title=f"v{version}",
        content="body",
        status=MemoStatus.SENT,
        sender_id="alice",
        recipient_id="bob",
        action_type=MemoActionType.UPDATED if parents else MemoActionType.CREATED,
        action_by_id="alice",
        action_comment=None,
        parent_node_ids=parents,
        created_at=T0 + timedelta(minutes=version),
    )


def _setup():
    nodes = [
        _node("root", 1),
        _node("a", 2, ("root",)),
        _node("b", 2, ("root",)),
        _node("c", 3, ("a",)),
    ]
    memo = Memo(
        id="memo-1",
        root_node_id="root",
        current_node_id="c",
        created_at=T0,
        updated_at=T0 + timedelta(minutes=3),
    )
    return memo, VersionGraph("memo-1", nodes)


def test_timeline_flags_current_and_branches():
    memo, graph = _setup()

    view = build_timeline(memo, graph.get("c"), graph)

    assert view.total_versions == 4
    assert view.current_version == 3
    assert [entry.node_id for entry in view.timeline][0] == "root"
    by_id = {entry.node_id: entry for entry in view.timeline}
    assert by_id["root"].has_branches is True
    assert by_id["a"].has_branches is False
    assert by_id["c"].is_current_version is True
    assert by_id["b"].is_current_version is False
    assert by_id["a"].timestamp == T0 + timedelta(minutes=2)


def test_revision_path_reports_depth_and_fan_out():
    memo, graph = _setup()

    path = build_revision_path(graph, graph.walk(memo.root_node_id))

    assert [(entry.node_id, entry.depth) for entry in path.path] == [
        ("root", 0),
        ("a", 1),
        ("c", 2),
        ("b", 1),
    ]
    assert path.start_version == 1
    assert path.end_version == 3
    assert path.total_nodes == 4
    assert path.path[0].has_multiple_children is True
    assert not any(entry.has_multiple_parents for entry in path.path)


def test_memo_view_navigation_context():
    memo, graph = _setup()

    root_view = build_memo_view(memo, graph.get("root"), graph)
    current_view = build_memo_view(memo, graph.get("c"), graph)

    assert root_view.next_version_id == "a"
    assert root_view.can_go_forward is True
    assert root_view.can_go_backward is False
    assert root_view.previous_version_id is None
    assert root_view.is_current_version is False
    assert root_view.total_versions == 4

    assert current_view.is_current_version is True
    assert current_view.previous_version_id == "a"
    assert current_view.can_go_forward is False
    assert current_view.last_modified_at == memo.updated_at
    assert current_view.action_timestamp == T0 + timedelta(minutes=3)

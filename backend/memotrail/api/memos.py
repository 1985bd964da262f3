from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from memotrail.core.config import get_settings
from memotrail.core.security import sanitize_text
from memotrail.domain.errors import (
    InvalidOperationError,
    MemoOperationError,
    NotFoundError,
    StorageUnavailableError,
    WriteConflictError,
)
from memotrail.domain.models import MemoActionType
from memotrail.schemas.common import ErrorResponse
from memotrail.schemas.memo import (
    ComparisonOut,
    HistoryResponse,
    MemoAssignRequest,
    MemoCommentRequest,
    MemoCreateRequest,
    MemoListItemOut,
    MemoListResponse,
    MemoOut,
    MemoStatusRequest,
    MemoUpdateRequest,
    MemoViewOut,
    RevisionPathOut,
    TimelineOut,
    VersionNodeOut,
)
from memotrail.services.memo_service import MemoService, get_memo_service

router = APIRouter(prefix="/api/memos", tags=["memos"])


@router.post("", response_model=MemoOut)
async def create_memo(
    payload: MemoCreateRequest,
    memo_service: MemoService = Depends(get_memo_service),
) -> MemoOut:
    """Send a new memo and create its root version."""

    settings = get_settings()
    title = _required_text(payload.title, settings.max_title_len, "Title")
    content = sanitize_text(payload.content, settings.max_content_len)
    memo = await memo_service.create_memo(
        title=title,
        content=content,
        sender_id=payload.sender_id,
        recipient_id=payload.recipient_id,
        metadata=payload.metadata,
    )
    return MemoOut.model_validate(memo)


@router.put("/{memo_id}", response_model=MemoOut)
async def update_memo(
    memo_id: str,
    payload: MemoUpdateRequest,
    user_id: str = Query(min_length=1),
    memo_service: MemoService = Depends(get_memo_service),
) -> MemoOut:
    """Record an edit as a new version."""

    settings = get_settings()
    title = (
        _required_text(payload.title, settings.max_title_len, "Title")
        if payload.title is not None
        else None
    )
    content = (
        sanitize_text(payload.content, settings.max_content_len)
        if payload.content is not None
        else None
    )
    memo = await memo_service.update_memo(
        memo_id,
        user_id,
        title=title,
        content=content,
        metadata=payload.metadata,
    )
    return MemoOut.model_validate(memo)


@router.post("/{memo_id}/assign", response_model=MemoOut)
async def assign_memo(
    memo_id: str,
    payload: MemoAssignRequest,
    memo_service: MemoService = Depends(get_memo_service),
) -> MemoOut:
    """Assign a memo, moving it to IN_PROGRESS."""

    memo = await memo_service.assign_memo(
        memo_id,
        assigned_to_id=payload.assigned_to_id,
        assigned_by_id=payload.assigned_by_id,
        comment=_optional_comment(payload.comment),
    )
    return MemoOut.model_validate(memo)


@router.put("/{memo_id}/status", response_model=MemoOut)
async def change_status(
    memo_id: str,
    payload: MemoStatusRequest,
    user_id: str = Query(min_length=1),
    memo_service: MemoService = Depends(get_memo_service),
) -> MemoOut:
    """Move a memo to a new status."""

    memo = await memo_service.change_status(
        memo_id, payload.status, user_id, comment=_optional_comment(payload.comment)
    )
    return MemoOut.model_validate(memo)


@router.post("/{memo_id}/comment", response_model=MemoOut)
async def comment_memo(
    memo_id: str,
    payload: MemoCommentRequest,
    memo_service: MemoService = Depends(get_memo_service),
) -> MemoOut:
    """Annotate a memo with a comment version."""

    comment = _required_text(payload.comment, get_settings().max_comment_len, "Comment")
    memo = await memo_service.comment_memo(memo_id, comment, payload.user_id)
    return MemoOut.model_validate(memo)


@router.get("/user/{user_id}", response_model=MemoListResponse)
async def list_user_memos(
    user_id: str,
    memo_service: MemoService = Depends(get_memo_service),
) -> MemoListResponse:
    """Memos the user sent, received or was assigned."""

    items = await memo_service.list_user_memos(user_id)
    return MemoListResponse(memos=[MemoListItemOut.model_validate(item) for item in items])


@router.get("/{memo_id}", response_model=VersionNodeOut)
async def get_current(
    memo_id: str,
    memo_service: MemoService = Depends(get_memo_service),
) -> VersionNodeOut:
    node = await memo_service.get_current_node(memo_id)
    return VersionNodeOut.model_validate(node)


@router.get("/{memo_id}/history", response_model=HistoryResponse)
async def get_history(
    memo_id: str,
    memo_service: MemoService = Depends(get_memo_service),
) -> HistoryResponse:
    nodes = await memo_service.get_history(memo_id)
    return HistoryResponse(nodes=[VersionNodeOut.model_validate(node) for node in nodes])


@router.get("/{memo_id}/version/{version}", response_model=VersionNodeOut)
async def get_version(
    memo_id: str,
    version: int,
    memo_service: MemoService = Depends(get_memo_service),
) -> VersionNodeOut:
    node = await memo_service.get_node_at_version(memo_id, version)
    return VersionNodeOut.model_validate(node)


@router.get("/{memo_id}/path", response_model=RevisionPathOut)
async def get_revision_path(
    memo_id: str,
    from_version: Optional[int] = Query(default=None, ge=1),
    memo_service: MemoService = Depends(get_memo_service),
) -> RevisionPathOut:
    """Depth-first walk of the version graph from a version (default root)."""

    path = await memo_service.get_revision_path(memo_id, from_version)
    return RevisionPathOut.model_validate(path)


@router.get("/{memo_id}/checkout/latest", response_model=MemoViewOut)
async def checkout_latest(
    memo_id: str,
    memo_service: MemoService = Depends(get_memo_service),
) -> MemoViewOut:
    return MemoViewOut.model_validate(await memo_service.checkout_latest(memo_id))


@router.get("/{memo_id}/checkout/root", response_model=MemoViewOut)
async def checkout_root(
    memo_id: str,
    memo_service: MemoService = Depends(get_memo_service),
) -> MemoViewOut:
    return MemoViewOut.model_validate(await memo_service.checkout_root(memo_id))


@router.get("/{memo_id}/checkout/version/{version}", response_model=MemoViewOut)
async def checkout_version(
    memo_id: str,
    version: int,
    memo_service: MemoService = Depends(get_memo_service),
) -> MemoViewOut:
    return MemoViewOut.model_validate(await memo_service.checkout_version(memo_id, version))


@router.get("/{memo_id}/checkout/node/{node_id}", response_model=MemoViewOut)
async def checkout_node(
    memo_id: str,
    node_id: str,
    memo_service: MemoService = Depends(get_memo_service),
) -> MemoViewOut:
    return MemoViewOut.model_validate(await memo_service.checkout_node(memo_id, node_id))


@router.get("/{memo_id}/checkout/timestamp", response_model=MemoViewOut)
async def checkout_timestamp(
    memo_id: str,
    timestamp: datetime = Query(),
    memo_service: MemoService = Depends(get_memo_service),
) -> MemoViewOut:
    """Check out the newest version created at or before ``timestamp``."""

    view = await memo_service.checkout_timestamp(memo_id, timestamp)
    return MemoViewOut.model_validate(view)


@router.get("/{memo_id}/checkout/action/{action_type}", response_model=MemoViewOut)
async def checkout_action(
    memo_id: str,
    action_type: MemoActionType,
    memo_service: MemoService = Depends(get_memo_service),
) -> MemoViewOut:
    """Check out the latest version produced by ``action_type``."""

    view = await memo_service.checkout_action(memo_id, action_type)
    return MemoViewOut.model_validate(view)


@router.get("/{memo_id}/navigate/next/{node_id}", response_model=MemoViewOut)
async def navigate_next(
    memo_id: str,
    node_id: str,
    memo_service: MemoService = Depends(get_memo_service),
) -> MemoViewOut:
    return MemoViewOut.model_validate(await memo_service.navigate_next_view(memo_id, node_id))


@router.get("/{memo_id}/navigate/previous/{node_id}", response_model=MemoViewOut)
async def navigate_previous(
    memo_id: str,
    node_id: str,
    memo_service: MemoService = Depends(get_memo_service),
) -> MemoViewOut:
    view = await memo_service.navigate_previous_view(memo_id, node_id)
    return MemoViewOut.model_validate(view)


@router.get("/{memo_id}/timeline", response_model=TimelineOut)
async def get_timeline(
    memo_id: str,
    memo_service: MemoService = Depends(get_memo_service),
) -> TimelineOut:
    return TimelineOut.model_validate(await memo_service.get_timeline(memo_id))


@router.get("/{memo_id}/compare", response_model=ComparisonOut)
async def compare_versions(
    memo_id: str,
    version_a: int = Query(ge=1),
    version_b: int = Query(ge=1),
    memo_service: MemoService = Depends(get_memo_service),
) -> ComparisonOut:
    """Field-level comparison between two versions."""

    comparison = await memo_service.compare_versions(memo_id, version_a, version_b)
    return ComparisonOut.model_validate(comparison)


async def memo_error_handler(request: Request, exc: MemoOperationError) -> JSONResponse:
    """Translate engine errors into HTTP responses."""

    payload = ErrorResponse(code=exc.code, message=exc.message)
    return JSONResponse(status_code=_memo_status(exc), content=payload.model_dump())


def _memo_status(exc: MemoOperationError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, WriteConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, StorageUnavailableError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, InvalidOperationError):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _required_text(value: str, max_length: int, label: str) -> str:
    cleaned = sanitize_text(value, max_length)
    if not cleaned:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"{label} cannot be empty"
        )
    return cleaned


def _optional_comment(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return sanitize_text(value, get_settings().max_comment_len) or None

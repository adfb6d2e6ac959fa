from __future__ import annotations

import asyncio
from typing import Iterable, Optional

from fastapi import APIRouter, Body, Depends, HTTPException

from confdesk.api.v1.deps import get_decision_service
from confdesk.core.roles import get_current_actor
from confdesk.models.actor import Actor
from confdesk.models.decision import DecisionRecordRequest
from confdesk.services.decision_service import DecisionService, ResultType, ServiceResult

router = APIRouter(tags=["Decisions"])

_STATUS_BY_RESULT: dict[ResultType, int] = {
    ResultType.VALIDATION_ERROR: 400,
    ResultType.FORBIDDEN: 403,
    ResultType.NOT_FOUND: 404,
    ResultType.CONFLICT: 409,
    ResultType.STORAGE_ERROR: 500,
}

_READ_RESULTS = (ResultType.VALIDATION_ERROR, ResultType.FORBIDDEN, ResultType.NOT_FOUND)


def _unwrap(result: ServiceResult, *, mapped: Iterable[ResultType], unavailable: str):
    """
    ServiceResult -> 响应数据 / HTTPException。

    中文注释:
    - 仅 mapped 里的结果类型按表映射；其余一律 503，不透出内部信息。
    """
    if result.ok:
        return result.data
    if result.type in set(mapped):
        raise HTTPException(status_code=_STATUS_BY_RESULT[result.type], detail=result.message)
    raise HTTPException(status_code=503, detail=unavailable)


@router.post("/papers/{paper_id}/decision")
async def record_decision(
    paper_id: str,
    payload: Optional[DecisionRecordRequest] = Body(default=None),
    actor: Actor = Depends(get_current_actor),
    service: DecisionService = Depends(get_decision_service),
):
    """
    记录最终决策并通知全部作者（仅编辑）。
    """
    outcome = payload.outcome if payload else None
    result = await asyncio.to_thread(
        service.record_decision, paper_id=paper_id, outcome=outcome, actor=actor
    )
    data = _unwrap(
        result,
        mapped=_STATUS_BY_RESULT.keys(),
        unavailable="Decision temporarily unavailable. Please try again later.",
    )
    return {"success": True, "data": data.model_dump(mode="json")}


@router.get("/papers/{paper_id}/decision")
async def get_decision(
    paper_id: str,
    actor: Actor = Depends(get_current_actor),
    service: DecisionService = Depends(get_decision_service),
):
    """
    作者/编辑查看决策（脱敏视图，不含审稿人身份与意见）。
    """
    result = await asyncio.to_thread(service.get_decision_view, paper_id=paper_id, actor=actor)
    data = _unwrap(
        result,
        mapped=_READ_RESULTS,
        unavailable="Decision temporarily unavailable. Please try again later.",
    )
    return {"success": True, "data": data.model_dump(mode="json")}


@router.post("/papers/{paper_id}/decision/notifications/resend")
async def resend_decision_notifications(
    paper_id: str,
    actor: Actor = Depends(get_current_actor),
    service: DecisionService = Depends(get_decision_service),
):
    """
    仅向“最新一次投递失败”的作者补发决策通知（仅编辑）。
    """
    result = await asyncio.to_thread(
        service.resend_failed_notifications, paper_id=paper_id, actor=actor
    )
    data = _unwrap(
        result,
        mapped=(*_READ_RESULTS, ResultType.STORAGE_ERROR),
        unavailable="Notification resend temporarily unavailable. Please try again later.",
    )
    return {"success": True, "data": data.model_dump(mode="json")}


@router.get("/papers/{paper_id}/decision/notifications")
async def list_decision_notification_attempts(
    paper_id: str,
    actor: Actor = Depends(get_current_actor),
    service: DecisionService = Depends(get_decision_service),
):
    result = await asyncio.to_thread(
        service.list_notification_attempts, paper_id=paper_id, actor=actor
    )
    attempts = _unwrap(
        result,
        mapped=_READ_RESULTS,
        unavailable="Notification history temporarily unavailable. Please try again later.",
    )
    return {"success": True, "data": [a.model_dump(mode="json") for a in attempts]}


@router.get("/papers/{paper_id}/review-status")
async def get_review_status(
    paper_id: str,
    actor: Actor = Depends(get_current_actor),
    service: DecisionService = Depends(get_decision_service),
):
    result = await asyncio.to_thread(service.get_review_status, paper_id=paper_id, actor=actor)
    status = _unwrap(
        result,
        mapped=_READ_RESULTS,
        unavailable="Review status temporarily unavailable. Please try again later.",
    )
    return {"success": True, "data": status.model_dump(mode="json")}

"""
Vetting Endpoints

Thin HTTP surface over the vetting pipeline: intake turns, session closure,
prospect registration, vetting runs and snapshot reads.
"""
from typing import Dict, List, Literal, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger
from pydantic import BaseModel, Field

from src.api.dependencies import get_pipeline
from src.core.extraction_session import ConversationClosedError, SessionNotFoundError
from src.core.pipeline import VettingPipeline
from src.core.vetting_orchestrator import ProspectNotFoundError, VettingImpossibleError
from src.models.prospect import Prospect

router = APIRouter(tags=["Vetting"])


# ============================================
# REQUEST / RESPONSE MODELS
# ============================================

class TurnRequest(BaseModel):
    text: str = Field(..., min_length=1)
    role: Literal["user", "assistant"] = "user"
    prospect_id: Optional[str] = None


class CloseRequest(BaseModel):
    reason: str = "operator"


class ProspectRequest(BaseModel):
    session_id: Optional[str] = None
    company_name: Optional[str] = None
    contact_name: Optional[str] = None
    title: Optional[str] = None
    email: Optional[str] = None
    domain: Optional[str] = None
    industry: Optional[str] = None
    company_size: Optional[str] = None
    employee_count: Optional[int] = Field(None, gt=0)


class TurnResponse(BaseModel):
    session_id: str
    fields: Dict[str, Optional[str]] = Field(default_factory=dict)
    completeness_score: Optional[float] = None
    missing_fields: List[str] = Field(default_factory=list)
    unclear_fields: List[str] = Field(default_factory=list)
    readiness_score: Optional[float] = None
    readiness_category: Optional[str] = None
    session_closed: bool


class SessionResponse(BaseModel):
    session_id: str
    turns: int
    is_closed: bool
    closed_reason: Optional[str] = None


# ============================================
# SESSIONS
# ============================================

@router.post("/sessions/{session_id}/turns", response_model=TurnResponse)
async def post_turn(
    session_id: str,
    body: TurnRequest,
    pipeline: VettingPipeline = Depends(get_pipeline),
):
    """
    Add a turn to an intake session.

    User turns are extracted and assessed immediately; assistant turns are
    only appended to the transcript.
    """
    try:
        if body.role == "assistant":
            conversation = await pipeline.record_assistant_turn(session_id, body.text)
            return TurnResponse(
                session_id=session_id,
                readiness_score=conversation.readiness_score,
                session_closed=conversation.is_closed,
            )

        result = await pipeline.start_or_continue_extraction(session_id, body.text, body.prospect_id)
    except ConversationClosedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return TurnResponse(
        session_id=session_id,
        fields=result.extraction.as_flat_dict(),
        completeness_score=result.completeness.completeness_score,
        missing_fields=[f.value for f in result.completeness.missing_fields],
        unclear_fields=[f.value for f in result.completeness.unclear_fields],
        readiness_score=result.readiness_score,
        readiness_category=result.readiness_category.value,
        session_closed=result.session_closed,
    )


@router.post("/sessions/{session_id}/close", response_model=SessionResponse)
async def close_session(
    session_id: str,
    body: CloseRequest | None = None,
    pipeline: VettingPipeline = Depends(get_pipeline),
):
    """Operator-forced closure of an intake session."""
    reason = body.reason if body else "operator"
    try:
        conversation = await pipeline.close_session(session_id, reason)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return SessionResponse(
        session_id=session_id,
        turns=len(conversation.turns),
        is_closed=conversation.is_closed,
        closed_reason=conversation.closed_reason,
    )


# ============================================
# PROSPECTS
# ============================================

@router.put("/prospects/{prospect_id}")
async def put_prospect(
    prospect_id: str,
    body: ProspectRequest,
    pipeline: VettingPipeline = Depends(get_pipeline),
):
    """Create or replace the prospect record a vetting run reads."""
    prospect = await pipeline.register_prospect(Prospect(prospect_id=prospect_id, **body.model_dump()))
    logger.info(f"📇 Registered prospect {prospect_id}")
    return prospect.model_dump(mode="json")


@router.post("/prospects/{prospect_id}/vetting")
async def run_vetting(
    prospect_id: str,
    force_refresh: bool = Query(False),
    pipeline: VettingPipeline = Depends(get_pipeline),
):
    """
    Vet a prospect.

    Returns the snapshot (reused when younger than the freshness window
    unless force_refresh is set) plus the failure notes of the run.

    Status codes:
        404: Unknown prospect
        422: No conversation data, nothing stored
    """
    try:
        result = await pipeline.run_vetting(prospect_id, force_refresh=force_refresh)
    except ProspectNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except VettingImpossibleError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"reason": e.reason.value, "message": str(e)},
        )

    return result.model_dump(mode="json")


@router.get("/prospects/{prospect_id}/snapshot")
async def get_snapshot(
    prospect_id: str,
    pipeline: VettingPipeline = Depends(get_pipeline),
):
    """Most recent snapshot; 404 if the prospect was never vetted."""
    snapshot = await pipeline.get_snapshot(prospect_id)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No snapshot for {prospect_id}")
    return snapshot.model_dump(mode="json")


@router.get("/prospects/{prospect_id}/snapshots")
async def list_snapshots(
    prospect_id: str,
    limit: int = Query(20, ge=1, le=100),
    pipeline: VettingPipeline = Depends(get_pipeline),
):
    """Snapshot history, newest first."""
    snapshots = await pipeline.list_snapshots(prospect_id, limit=limit)
    return [s.model_dump(mode="json") for s in snapshots]

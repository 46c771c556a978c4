"""API endpoints for commitment detection and lifecycle management."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from outlay.database import get_db
from outlay.schemas.commitment import (
    CommitmentGroupResponse,
    EndedCommitmentGroupResponse,
    ExcludedMerchantResponse,
    CommitmentSummaryResponse,
    TrendPointResponse,
    CommitmentListResponse,
    SetStatusRequest,
    SetOverrideRequest,
    SetOverrideResponse,
    MergeMerchantsRequest,
    ExcludeTransactionRequest,
    UpdatedResponse,
    SuccessResponse,
)
from outlay.services import commitment_service
from outlay.services.commitment_service import CommitmentValidationError

router = APIRouter(prefix="/commitments", tags=["commitments"])


@router.get("", response_model=CommitmentListResponse)
def get_commitments(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db)
):
    """
    Detect commitments from transaction history.
    Recomputed on every call, then reconciled with stored statuses and overrides.
    """
    report = commitment_service.get_commitment_report(db, start_date, end_date)

    return CommitmentListResponse(
        active_groups=[CommitmentGroupResponse.model_validate(g) for g in report.active],
        ended_groups=[EndedCommitmentGroupResponse.model_validate(g) for g in report.ended],
        excluded_merchants=[ExcludedMerchantResponse.model_validate(m) for m in report.excluded_merchants],
        summary=CommitmentSummaryResponse.model_validate(report.summary),
        trend_data=[TrendPointResponse.model_validate(p) for p in report.trend],
    )


@router.post("/status", response_model=SuccessResponse)
def set_commitment_status(
    request: SetStatusRequest,
    db: Session = Depends(get_db)
):
    """Mark a merchant active, ended or not recurring."""
    try:
        commitment_service.set_status(
            db,
            request.merchant,
            request.status,
            notes=request.notes,
            status_date=request.status_date,
        )
    except CommitmentValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SuccessResponse()


@router.post("/override", response_model=SetOverrideResponse)
def set_commitment_override(
    request: SetOverrideRequest,
    db: Session = Depends(get_db)
):
    """Override a merchant's frequency and/or monthly amount."""
    try:
        amount = commitment_service.set_override(
            db,
            request.merchant,
            frequency_override=request.frequency_override,
            monthly_amount_override=request.monthly_amount_override,
        )
    except CommitmentValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SetOverrideResponse(
        success=True,
        estimated_monthly_amount=float(amount) if amount is not None else None
    )


@router.post("/merge", response_model=UpdatedResponse)
def merge_merchants(
    request: MergeMerchantsRequest,
    db: Session = Depends(get_db)
):
    """Merge several merchants into one name, dropping the old names' statuses."""
    try:
        updated = commitment_service.merge_merchants(db, request.merchants, request.target)
    except CommitmentValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return UpdatedResponse(updated=updated)


@router.post("/exclude", response_model=SuccessResponse)
def exclude_transaction(
    request: ExcludeTransactionRequest,
    db: Session = Depends(get_db)
):
    """Exclude a single transaction from detection, or restore it."""
    try:
        if request.restore:
            commitment_service.restore_transaction(db, request.transaction_id)
        else:
            commitment_service.exclude_transaction(db, request.transaction_id)
    except CommitmentValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SuccessResponse()

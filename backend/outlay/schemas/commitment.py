"""Pydantic schemas for commitments."""

from pydantic import BaseModel
from typing import Optional, List
from datetime import date
from decimal import Decimal

from outlay.models.commitment import CommitmentStatus, Frequency


class CommitmentGroupResponse(BaseModel):
    merchant_name: str
    occurrences: int
    total_amount: float
    avg_amount: float
    estimated_monthly_amount: float
    frequency: Frequency
    first_date: date
    last_date: date
    category: Optional[str] = None
    category_color: Optional[str] = None
    transaction_ids: List[str]
    frequency_override: Optional[Frequency] = None
    monthly_amount_override: Optional[float] = None

    class Config:
        from_attributes = True


class EndedCommitmentGroupResponse(CommitmentGroupResponse):
    status_changed_at: date
    unexpected_activity: bool


class ExcludedMerchantResponse(BaseModel):
    merchant: str
    excluded_at: date

    class Config:
        from_attributes = True


class CommitmentSummaryResponse(BaseModel):
    active_count: int
    active_monthly: float
    ended_count: int
    ended_was_monthly: float
    excluded_count: int

    class Config:
        from_attributes = True


class TrendPointResponse(BaseModel):
    month: str
    amount: float

    class Config:
        from_attributes = True


class CommitmentListResponse(BaseModel):
    """Full commitments view: reconciled groups, summary and trend."""
    active_groups: List[CommitmentGroupResponse]
    ended_groups: List[EndedCommitmentGroupResponse]
    excluded_merchants: List[ExcludedMerchantResponse]
    summary: CommitmentSummaryResponse
    trend_data: List[TrendPointResponse]


class SetStatusRequest(BaseModel):
    merchant: str
    status: CommitmentStatus
    notes: Optional[str] = None
    status_date: Optional[date] = None  # Defaults to today


class SetOverrideRequest(BaseModel):
    """Leave both fields empty to clear the override."""
    merchant: str
    frequency_override: Optional[Frequency] = None
    monthly_amount_override: Optional[Decimal] = None


class SetOverrideResponse(BaseModel):
    success: bool
    estimated_monthly_amount: Optional[float] = None


class MergeMerchantsRequest(BaseModel):
    merchants: List[str]
    target: str


class ExcludeTransactionRequest(BaseModel):
    transaction_id: str
    restore: bool = False


class UpdatedResponse(BaseModel):
    updated: int


class SuccessResponse(BaseModel):
    success: bool = True

"""
Merchant API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional

from outlay.database import get_db
from outlay.schemas.commitment import UpdatedResponse
from outlay.schemas.merchant import (
    MerchantResponse,
    SplitMerchantRequest,
    DescriptionGroupResponse,
    MerchantTransactionResponse,
    MerchantDetailResponse,
    MergePreviewRequest,
    MergePreviewResponse,
)
from outlay.services import commitment_service
from outlay.services.commitment_service import CommitmentValidationError

router = APIRouter(prefix="/merchants", tags=["merchants"])


@router.get("", response_model=list[MerchantResponse])
def list_merchants(
    search: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """List normalized merchants with totals, most frequent first"""
    merchants = commitment_service.list_merchants(db, search)
    return [MerchantResponse.model_validate(m) for m in merchants]


@router.post("/split", response_model=UpdatedResponse)
def split_merchant(
    request: SplitMerchantRequest,
    db: Session = Depends(get_db)
):
    """Move selected transactions to a new merchant name"""
    try:
        updated = commitment_service.split_merchant(db, request.transaction_ids, request.new_merchant)
    except CommitmentValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return UpdatedResponse(updated=updated)


@router.post("/merge-preview", response_model=MergePreviewResponse)
def preview_merge(
    request: MergePreviewRequest,
    db: Session = Depends(get_db)
):
    """Show what each merchant of a planned merge contains"""
    try:
        preview = commitment_service.preview_merge(db, request.merchants)
    except CommitmentValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return MergePreviewResponse(preview={
        merchant: [DescriptionGroupResponse.model_validate(g) for g in groups]
        for merchant, groups in preview.items()
    })


@router.get("/{merchant:path}", response_model=MerchantDetailResponse, response_model_exclude_unset=True)
def get_merchant(
    merchant: str,
    description: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """
    Break a merchant down by statement description.
    With ``description``, list that description's transactions instead (ids feed the split).
    """
    if description:
        transactions = commitment_service.get_merchant_transactions(db, merchant, description)
        return MerchantDetailResponse(
            transactions=[MerchantTransactionResponse.model_validate(t) for t in transactions]
        )

    groups = commitment_service.get_merchant_description_groups(db, merchant)
    return MerchantDetailResponse(groups=[DescriptionGroupResponse.model_validate(g) for g in groups])

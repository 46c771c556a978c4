"""
Merchant schemas.
"""

from pydantic import BaseModel
from typing import Dict, List, Optional
from datetime import date

from outlay.models.transaction import Direction


class MerchantResponse(BaseModel):
    merchant: str
    transaction_count: int
    total_amount: float
    first_date: date
    last_date: date
    category_name: Optional[str] = None
    category_color: Optional[str] = None

    class Config:
        from_attributes = True


class SplitMerchantRequest(BaseModel):
    transaction_ids: List[str]
    new_merchant: str


class DescriptionGroupResponse(BaseModel):
    description: str
    transaction_count: int
    total_amount: float

    class Config:
        from_attributes = True


class MerchantTransactionResponse(BaseModel):
    id: str
    date: date
    description: str
    amount: float
    direction: Direction
    category_name: Optional[str] = None
    category_color: Optional[str] = None
    excluded_from_commitments: bool = False

    class Config:
        from_attributes = True


class MerchantDetailResponse(BaseModel):
    """Description groups, or the transactions of one description when filtered."""
    groups: Optional[List[DescriptionGroupResponse]] = None
    transactions: Optional[List[MerchantTransactionResponse]] = None


class MergePreviewRequest(BaseModel):
    merchants: List[str]


class MergePreviewResponse(BaseModel):
    preview: Dict[str, List[DescriptionGroupResponse]]

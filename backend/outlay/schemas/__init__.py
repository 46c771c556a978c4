"""
Pydantic schemas package.
"""

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
from outlay.schemas.merchant import (
    MerchantResponse,
    SplitMerchantRequest,
    DescriptionGroupResponse,
    MerchantTransactionResponse,
    MerchantDetailResponse,
    MergePreviewRequest,
    MergePreviewResponse,
)

__all__ = [
    "CommitmentGroupResponse",
    "EndedCommitmentGroupResponse",
    "ExcludedMerchantResponse",
    "CommitmentSummaryResponse",
    "TrendPointResponse",
    "CommitmentListResponse",
    "SetStatusRequest",
    "SetOverrideRequest",
    "SetOverrideResponse",
    "MergeMerchantsRequest",
    "ExcludeTransactionRequest",
    "UpdatedResponse",
    "SuccessResponse",
    "MerchantResponse",
    "SplitMerchantRequest",
    "DescriptionGroupResponse",
    "MerchantTransactionResponse",
    "MerchantDetailResponse",
    "MergePreviewRequest",
    "MergePreviewResponse",
]

"""Pydantic schemas for records crossing the pipeline boundary."""

from advisor_pipeline.schemas.application import ApplicationRecord, TriageResultResponse
from advisor_pipeline.schemas.bulk import BulkFailedItem, BulkOperationResult

__all__ = [
    # Application records
    "ApplicationRecord",
    "TriageResultResponse",
    # Bulk operations
    "BulkFailedItem",
    "BulkOperationResult",
]

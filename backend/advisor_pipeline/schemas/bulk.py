"""Bulk operation result schemas.

Bulk stage changes, archives, next-step edits and reviews allow partial
success: some items succeed, some fail, and the batch is never aborted.
"""

from pydantic import BaseModel, ConfigDict, Field


class BulkFailedItem(BaseModel):
    """Details about a failed item in a bulk operation.

    Attributes:
        id: The ID of the application that failed.
        error: Error code explaining why the operation failed.
        message: Human-readable explanation.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., description="ID of the failed application")
    error: str = Field(..., description="Error code (e.g., NOT_FOUND, MISSING_REASON)")
    message: str = Field(default="", description="Human-readable explanation")


class BulkOperationResult(BaseModel):
    """Result of a bulk operation with partial success support.

    Attributes:
        succeeded: IDs that were successfully processed.
        failed: Items that failed with error details.
    """

    model_config = ConfigDict(extra="forbid")

    succeeded: list[str] = Field(
        default_factory=list,
        description="IDs that were successfully processed",
    )
    failed: list[BulkFailedItem] = Field(
        default_factory=list,
        description="Items that failed with error details",
    )

    @property
    def success_count(self) -> int:
        """Number of applications updated."""
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        """Number of applications left unchanged."""
        return len(self.failed)

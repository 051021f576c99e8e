"""Application record - one student's pursuit of one job opening.

The record is an immutable in-memory snapshot of what the persistence layer
returned. Mutation helpers in services.application_workflow return new
records; nothing here writes back to storage.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ApplicationStage(Enum):
    """Pipeline stages.

    Values match the stage strings stored on application records.
    Declaration order is the kanban display order.
    """

    PROSPECT = "Prospect"
    APPLIED = "Applied"
    INTERVIEW = "Interview"
    OFFER = "Offer"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    WITHDRAWN = "Withdrawn"
    ARCHIVED = "Archived"

    @classmethod
    def from_string(cls, value: str) -> "ApplicationStage":
        """Convert a stored stage string to enum.

        Args:
            value: Stage string from the store (e.g., "Interview").

        Returns:
            The corresponding ApplicationStage enum value.

        Raises:
            ValueError: If the string doesn't match any stage.
        """
        for stage in cls:
            if stage.value == value:
                return stage
        valid = [s.value for s in cls]
        raise ValueError(f"Invalid application stage: '{value}'. Valid: {valid}")


@dataclass(frozen=True)
class Application:
    """Job application tracked by an advisor.

    Attributes:
        id: Opaque unique identifier from the store.
        stage: Current pipeline stage.
        created_at: When the record was created.
        updated_at: Last mutation of any field, stage changes included.
        applied_date: Set when the stage first reaches Applied.
        next_step: Advisor's next action, free text.
        next_step_date: When next_step is due. Ignored once terminal.
        notes: Append-only text log; stage-change reasons land here.
        student_id: Owning student, used for caseload statistics.
        student_name: Display name of the student.
        company_name: Employer name.
        position_title: Role applied for.
        cohort: Student graduation year / cohort label.
        assigned_advisor_id: Advisor the application is assigned to.
        extra: Store fields this package does not interpret, passed through.
    """

    id: str
    stage: ApplicationStage
    created_at: datetime
    updated_at: datetime
    applied_date: datetime | None = None
    next_step: str | None = None
    next_step_date: datetime | None = None
    notes: str = ""
    student_id: str | None = None
    student_name: str | None = None
    company_name: str | None = None
    position_title: str | None = None
    cohort: str | None = None
    assigned_advisor_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        # Strings and None are programmer errors; parse through ApplicationStage.from_string
        if not isinstance(self.stage, ApplicationStage):
            raise ValueError(
                f"Application {self.id!r} has invalid stage {self.stage!r}; "
                "expected an ApplicationStage"
            )

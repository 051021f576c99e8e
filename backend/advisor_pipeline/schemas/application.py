"""Application record and triage schemas.

ApplicationRecord parses a raw record from the persistence layer's read API
into an Application. Store keys the pipeline does not interpret are kept as
pass-through extras. TriageResultResponse is the shape the view layer
consumes for badges, counts and the stage-change control.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from advisor_pipeline.models.application import Application, ApplicationStage
from advisor_pipeline.services.stage_graph import get_next_stages
from advisor_pipeline.services.triage import TriagedApplication

_TIMESTAMP_FIELDS = ("created_at", "updated_at", "applied_date", "next_step_date")


class ApplicationRecord(BaseModel):
    """Raw application record as returned by the store.

    Timestamps may be datetimes, ISO strings, or epoch milliseconds. Naive
    datetimes are read as UTC. A missing or empty stage means the record
    predates stage tracking and is treated as Prospect; an unknown stage
    string is rejected.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    stage: ApplicationStage = ApplicationStage.PROSPECT
    created_at: datetime
    updated_at: datetime
    applied_date: datetime | None = None
    next_step: str | None = None
    next_step_date: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("next_step_date", "due_date"),
    )
    notes: str | None = None
    student_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("student_id", "user_id"),
    )
    student_name: str | None = None
    company_name: str | None = None
    position_title: str | None = None
    cohort: str | None = Field(
        default=None,
        validation_alias=AliasChoices("cohort", "student_graduation_year"),
    )
    assigned_advisor_id: str | None = None

    @field_validator("stage", mode="before")
    @classmethod
    def _default_missing_stage(cls, value: Any) -> Any:
        return ApplicationStage.PROSPECT if value is None or value == "" else value

    @field_validator(*_TIMESTAMP_FIELDS, mode="before")
    @classmethod
    def _parse_epoch_millis(cls, value: Any) -> Any:
        # bool is an int subclass but never an epoch value
        if isinstance(value, int | float) and not isinstance(value, bool):
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        return value

    @field_validator(*_TIMESTAMP_FIELDS)
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def to_application(self) -> Application:
        """Convert to the immutable domain record."""
        return Application(
            id=self.id,
            stage=self.stage,
            created_at=self.created_at,
            updated_at=self.updated_at,
            applied_date=self.applied_date,
            next_step=self.next_step,
            next_step_date=self.next_step_date,
            notes=self.notes or "",
            student_id=self.student_id,
            student_name=self.student_name,
            company_name=self.company_name,
            position_title=self.position_title,
            cohort=self.cohort,
            assigned_advisor_id=self.assigned_advisor_id,
            extra=dict(self.model_extra or {}),
        )


class TriageResultResponse(BaseModel):
    """Triage output for one application, serialized for the view layer.

    Attributes:
        application_id: Application the result belongs to.
        stage: Current stage.
        next_stages: Stages offered by the stage-change control (empty when
            terminal).
        needs_action: Whether an advisor should act.
        reasons: Triage reason codes, sorted.
        is_overdue: Next step date has passed.
        is_due_soon: Next step due within the due-soon window.
        is_stale: No update within the staleness threshold.
        days_since_update: Whole days since the last update.
        urgency: Urgency level code.
    """

    model_config = ConfigDict(extra="forbid")

    application_id: str
    stage: ApplicationStage
    next_stages: list[ApplicationStage]
    needs_action: bool
    reasons: list[str]
    is_overdue: bool
    is_due_soon: bool
    is_stale: bool
    days_since_update: int = Field(ge=0)
    urgency: str

    @classmethod
    def from_triaged(cls, item: TriagedApplication) -> "TriageResultResponse":
        """Build a response from a triaged application."""
        app, triage = item.application, item.triage
        return cls(
            application_id=app.id,
            stage=app.stage,
            next_stages=get_next_stages(app.stage),
            needs_action=triage.needs_action,
            reasons=sorted(reason.value for reason in triage.reasons),
            is_overdue=triage.is_overdue,
            is_due_soon=triage.is_due_soon,
            is_stale=triage.is_stale,
            days_since_update=triage.days_since_update,
            urgency=triage.urgency.value,
        )

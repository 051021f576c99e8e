"""Application workflow - apply validated changes to application records.

Bridges StageGraph validation to the record shape the mutation layer
persists. Records are frozen; every helper returns a new Application and
leaves its input untouched. Persisting the result is the caller's job.

Single-record helpers:

1. transition_application: Validated stage change with reason appended to notes
2. update_next_step: Set or replace the advisor's next step and due date
3. mark_reviewed: Bump updated_at to clear staleness

Bulk helpers apply the same operations across an explicit set of IDs and
report partial success.
"""

import dataclasses
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from advisor_pipeline.core.config import settings
from advisor_pipeline.core.errors import (
    APIError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from advisor_pipeline.models.application import Application, ApplicationStage
from advisor_pipeline.schemas.bulk import BulkFailedItem, BulkOperationResult
from advisor_pipeline.services.stage_graph import is_terminal, validate_transition

logger = structlog.get_logger()

_NOTE_SEPARATOR = "\n\n"


# =============================================================================
# Result Dataclasses
# =============================================================================


@dataclass(frozen=True)
class BulkOutcome:
    """Result of a bulk helper.

    Attributes:
        updated: New records for every application that succeeded, by ID.
        result: Succeeded/failed summary for the view layer.
    """

    updated: dict[str, Application] = field(default_factory=dict)
    result: BulkOperationResult = field(default_factory=BulkOperationResult)


# =============================================================================
# Helpers
# =============================================================================


def append_note(
    notes: str,
    entry: str,
    now: datetime,
    date_format: str | None = None,
) -> str:
    """Append a date-stamped entry to an application's notes.

    Existing content is never rewritten; entries are separated by a blank
    line.

    Args:
        notes: Current notes text (may be empty).
        entry: Text to append, kept verbatim.
        now: Timestamp for the date prefix; aware values are stamped with
            their UTC date.
        date_format: strftime format; defaults to settings.note_date_format.

    Returns:
        The extended notes text.
    """
    if now.tzinfo is not None:
        now = now.astimezone(UTC)
    stamp = now.strftime(date_format or settings.note_date_format)
    stamped = f"[{stamp}] {entry}"
    return f"{notes}{_NOTE_SEPARATOR}{stamped}" if notes else stamped


def _unique(ids: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for app_id in ids:
        if app_id not in seen:
            seen.add(app_id)
            ordered.append(app_id)
    return ordered


# =============================================================================
# Public API
# =============================================================================


def transition_application(
    app: Application,
    target: ApplicationStage,
    now: datetime,
    reason: str | None = None,
    *,
    note_label: str = "Stage changed to",
) -> Application:
    """Move an application to a new stage.

    Validates through StageGraph, then returns a record with the new stage,
    updated_at=now, applied_date stamped on first entry into Applied, and
    the reason (when given) appended to notes as
    "[<date>] <note_label> <Stage>: <reason>".

    Args:
        app: Current record.
        target: Requested stage.
        now: Transition time.
        reason: Advisor explanation; required for Rejected/Withdrawn/Archived.
        note_label: Leading text of the appended note entry.

    Returns:
        The updated Application.

    Raises:
        IllegalTransitionError: Target not reachable from the current stage.
        MissingReasonError: Target requires a reason and none was given.
    """
    validation = validate_transition(app.stage, target, reason)
    if validation.error is not None:
        raise validation.error

    notes = app.notes
    has_reason = bool(reason and reason.strip())
    if has_reason:
        notes = append_note(notes, f"{note_label} {target.value}: {reason}", now)

    applied_date = app.applied_date
    if target == ApplicationStage.APPLIED and applied_date is None:
        applied_date = now

    logger.info(
        "Application stage changed",
        application_id=app.id,
        from_stage=app.stage.value,
        to_stage=target.value,
        has_reason=has_reason,
        reason_length=len(reason) if reason else 0,
    )

    return dataclasses.replace(
        app,
        stage=target,
        notes=notes,
        applied_date=applied_date,
        updated_at=now,
    )


def update_next_step(
    app: Application,
    next_step: str,
    next_step_date: datetime | None,
    now: datetime,
) -> Application:
    """Set the advisor's next step for an active application.

    Args:
        app: Current record.
        next_step: Description of the next action (must not be blank).
        next_step_date: When it is due, or None for no due date.
        now: Edit time.

    Returns:
        The updated Application.

    Raises:
        ValidationError: next_step is blank.
        InvalidStateError: Application is in a terminal stage.
    """
    if not next_step.strip():
        raise ValidationError("Next step must not be blank.", code="MISSING_NEXT_STEP")

    if is_terminal(app.stage):
        raise InvalidStateError(
            f"Cannot set a next step on an application in {app.stage.value}.",
            code="TERMINAL_STAGE",
        )

    return dataclasses.replace(
        app,
        next_step=next_step,
        next_step_date=next_step_date,
        updated_at=now,
    )


def mark_reviewed(app: Application, now: datetime) -> Application:
    """Record an advisor review; only updated_at changes."""
    return dataclasses.replace(app, updated_at=now)


# =============================================================================
# Bulk Operations
# =============================================================================


def _apply_bulk(
    operation: str,
    records: Mapping[str, Application],
    ids: Iterable[str],
    change: Callable[[Application], Application],
) -> BulkOutcome:
    outcome = BulkOutcome()

    for app_id in _unique(ids):
        app = records.get(app_id)
        try:
            if app is None:
                raise NotFoundError("Application", app_id)
            outcome.updated[app_id] = change(app)
        except APIError as exc:
            outcome.result.failed.append(
                BulkFailedItem(id=app_id, error=exc.code, message=exc.message)
            )
            continue
        outcome.result.succeeded.append(app_id)

    logger.info(
        "Bulk operation finished",
        operation=operation,
        succeeded=outcome.result.success_count,
        failed=outcome.result.failure_count,
    )
    return outcome


def bulk_transition(
    records: Mapping[str, Application],
    ids: Iterable[str],
    target: ApplicationStage,
    now: datetime,
    reason: str | None = None,
) -> BulkOutcome:
    """Move every selected application to target.

    Each application is validated on its own; failures (unknown ID, illegal
    transition, missing reason) are reported and do not stop the batch.
    Duplicate IDs are processed once.

    Args:
        records: Working set of applications by ID.
        ids: Selected application IDs.
        target: Requested stage.
        now: Transition time shared by the batch.
        reason: Explanation applied to every application.

    Returns:
        BulkOutcome with updated records and the succeeded/failed summary.
    """
    return _apply_bulk(
        f"transition:{target.value}",
        records,
        ids,
        lambda app: transition_application(
            app, target, now, reason, note_label="Bulk stage change to"
        ),
    )


def bulk_archive(
    records: Mapping[str, Application],
    ids: Iterable[str],
    reason: str,
    now: datetime,
) -> BulkOutcome:
    """Archive every selected application with a shared reason.

    The recorded reason is "Archived: <reason>". A blank reason fails every
    item with MISSING_REASON.
    """
    return bulk_transition(
        records,
        ids,
        ApplicationStage.ARCHIVED,
        now,
        reason=f"Archived: {reason}" if reason.strip() else None,
    )


def bulk_update_next_step(
    records: Mapping[str, Application],
    ids: Iterable[str],
    next_step: str,
    next_step_date: datetime | None,
    now: datetime,
) -> BulkOutcome:
    """Set the same next step and due date on every selected application."""
    return _apply_bulk(
        "update_next_step",
        records,
        ids,
        lambda app: update_next_step(app, next_step, next_step_date, now),
    )


def bulk_mark_reviewed(
    records: Mapping[str, Application],
    ids: Iterable[str],
    now: datetime,
) -> BulkOutcome:
    """Mark every selected application as reviewed."""
    return _apply_bulk(
        "mark_reviewed",
        records,
        ids,
        lambda app: mark_reviewed(app, now),
    )

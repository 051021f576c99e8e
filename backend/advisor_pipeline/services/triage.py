"""Needs-action triage for application records.

Decides, for one application and a caller-supplied "now", whether an
advisor should look at it and why. Rules are evaluated independently and
only for active stages; terminal applications never need action.

Rules:
    no_next_step       next_step is empty or missing
    overdue_next_step  next_step_date < now
    due_soon           not overdue and next_step_date - now <= due-soon window
    stale_no_activity  whole days since updated_at >= stale threshold

Urgency (highest applicable wins):
    critical  overdue
    high      due soon, due within the next 24 hours
    medium    due soon
    low       needs action only for staleness or a missing next step
    none      no action needed
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from advisor_pipeline.core.config import Settings
from advisor_pipeline.models.application import Application
from advisor_pipeline.services.stage_graph import is_active

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_DUE_SOON_DAYS = 3
DEFAULT_STALE_AFTER_DAYS = 14

_ONE_DAY = timedelta(days=1)


# =============================================================================
# Enums
# =============================================================================


class TriageReason(Enum):
    """Why an application needs advisor attention."""

    NO_NEXT_STEP = "no_next_step"
    OVERDUE_NEXT_STEP = "overdue_next_step"
    DUE_SOON = "due_soon"
    STALE_NO_ACTIVITY = "stale_no_activity"


class UrgencyLevel(Enum):
    """How soon an advisor should act, for sorting and badges."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"

    @property
    def rank(self) -> int:
        """Sort key: 4 for critical down to 0 for none."""
        return _URGENCY_RANK[self]


_URGENCY_RANK: dict[UrgencyLevel, int] = {
    UrgencyLevel.CRITICAL: 4,
    UrgencyLevel.HIGH: 3,
    UrgencyLevel.MEDIUM: 2,
    UrgencyLevel.LOW: 1,
    UrgencyLevel.NONE: 0,
}

TRIAGE_REASON_LABELS: dict[TriageReason, str] = {
    TriageReason.NO_NEXT_STEP: "No next step defined",
    TriageReason.OVERDUE_NEXT_STEP: "Overdue",
    TriageReason.DUE_SOON: "Due soon",
    TriageReason.STALE_NO_ACTIVITY: "No recent activity",
}

URGENCY_LABELS: dict[UrgencyLevel, str] = {
    UrgencyLevel.CRITICAL: "Overdue",
    UrgencyLevel.HIGH: "Due today",
    UrgencyLevel.MEDIUM: "Due soon",
    UrgencyLevel.LOW: "Stale",
    UrgencyLevel.NONE: "On track",
}


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class TriageConfig:
    """Thresholds for the triage rules.

    Attributes:
        due_soon_window: A next step due within this window is "due soon".
        stale_after_days: Whole days without an update before an active
            application counts as stale.
    """

    due_soon_window: timedelta = timedelta(days=DEFAULT_DUE_SOON_DAYS)
    stale_after_days: int = DEFAULT_STALE_AFTER_DAYS

    @classmethod
    def from_settings(cls, settings: Settings) -> "TriageConfig":
        """Build a config from environment-backed settings.

        Args:
            settings: Loaded pipeline settings.

        Returns:
            TriageConfig using the configured day counts.
        """
        return cls(
            due_soon_window=timedelta(days=settings.triage_due_soon_days),
            stale_after_days=settings.triage_stale_days,
        )


@dataclass(frozen=True)
class TriageResult:
    """Triage outcome for one application.

    reasons is non-empty exactly when needs_action is True. is_overdue and
    is_due_soon are never both True.
    """

    needs_action: bool
    reasons: frozenset[TriageReason]
    is_overdue: bool
    is_due_soon: bool
    is_stale: bool
    days_since_update: int
    urgency: UrgencyLevel = UrgencyLevel.NONE


@dataclass(frozen=True)
class TriagedApplication:
    """An application paired with its triage result."""

    application: Application
    triage: TriageResult


# =============================================================================
# Helpers
# =============================================================================


def days_since(moment: datetime, now: datetime) -> int:
    """Whole days elapsed from moment to now, floored and clamped at 0.

    Args:
        moment: Earlier timestamp (a future value yields 0).
        now: Reference time.

    Returns:
        Non-negative day count.
    """
    return max(0, (now - moment) // _ONE_DAY)


def _urgency_for(
    reasons: frozenset[TriageReason],
    next_step_date: datetime | None,
    now: datetime,
) -> UrgencyLevel:
    if TriageReason.OVERDUE_NEXT_STEP in reasons:
        return UrgencyLevel.CRITICAL
    if TriageReason.DUE_SOON in reasons:
        # next_step_date is set whenever DUE_SOON fires
        if next_step_date is not None and next_step_date - now < _ONE_DAY:
            return UrgencyLevel.HIGH
        return UrgencyLevel.MEDIUM
    if reasons:
        return UrgencyLevel.LOW
    return UrgencyLevel.NONE


# =============================================================================
# Public API
# =============================================================================


def classify(
    app: Application,
    now: datetime,
    config: TriageConfig | None = None,
) -> TriageResult:
    """Triage a single application.

    Args:
        app: Application to inspect.
        now: Reference time. Never read from the clock here so results are
            reproducible.
        config: Thresholds; defaults to a 3-day due-soon window and a
            14-day staleness threshold.

    Returns:
        TriageResult. Terminal-stage applications always get
        needs_action=False and no reasons, whatever their field values.
    """
    config = config or TriageConfig()
    elapsed = days_since(app.updated_at, now)

    if not is_active(app.stage):
        return TriageResult(
            needs_action=False,
            reasons=frozenset(),
            is_overdue=False,
            is_due_soon=False,
            is_stale=False,
            days_since_update=elapsed,
        )

    reasons: set[TriageReason] = set()

    if not (app.next_step and app.next_step.strip()):
        reasons.add(TriageReason.NO_NEXT_STEP)

    is_overdue = False
    is_due_soon = False
    if app.next_step_date is not None:
        if app.next_step_date < now:
            is_overdue = True
            reasons.add(TriageReason.OVERDUE_NEXT_STEP)
        elif app.next_step_date - now <= config.due_soon_window:
            is_due_soon = True
            reasons.add(TriageReason.DUE_SOON)

    is_stale = elapsed >= config.stale_after_days
    if is_stale:
        reasons.add(TriageReason.STALE_NO_ACTIVITY)

    frozen_reasons = frozenset(reasons)
    return TriageResult(
        needs_action=bool(frozen_reasons),
        reasons=frozen_reasons,
        is_overdue=is_overdue,
        is_due_soon=is_due_soon,
        is_stale=is_stale,
        days_since_update=elapsed,
        urgency=_urgency_for(frozen_reasons, app.next_step_date, now),
    )


def classify_all(
    apps: Iterable[Application],
    now: datetime,
    config: TriageConfig | None = None,
) -> list[TriagedApplication]:
    """Triage every application, preserving input order.

    Args:
        apps: Applications to inspect.
        now: Reference time shared by the whole batch.
        config: Thresholds passed through to classify.

    Returns:
        One TriagedApplication per input, in the same order.
    """
    config = config or TriageConfig()
    triaged = [
        TriagedApplication(application=app, triage=classify(app, now, config))
        for app in apps
    ]
    logger.debug(
        "Triaged %d applications, %d need action",
        len(triaged),
        sum(1 for item in triaged if item.triage.needs_action),
    )
    return triaged

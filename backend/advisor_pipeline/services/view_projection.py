"""View projection over triaged applications.

Pure aggregation for the advisor console: filtering, table sorting,
kanban grouping, bulk selection and pipeline statistics. Nothing here
decides triage or transitions; it only rearranges TriagedApplication
items produced by services.triage.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from advisor_pipeline.core.errors import ValidationError
from advisor_pipeline.core.filtering import SortParams, parse_filter_value
from advisor_pipeline.models.application import ApplicationStage
from advisor_pipeline.services.stage_graph import is_active
from advisor_pipeline.services.triage import TriagedApplication, TriageReason

logger = logging.getLogger(__name__)

DEFAULT_SORT = "-updated_at"

# Archived applications stay readable but are left off the board.
KANBAN_STAGES: tuple[ApplicationStage, ...] = tuple(
    stage for stage in ApplicationStage if stage != ApplicationStage.ARCHIVED
)


# =============================================================================
# Filtering
# =============================================================================


class ApplicationFilters(BaseModel):
    """Filters for the table and kanban views. All filters combine with AND.

    stages and cohorts also accept a comma-separated string
    ("Applied,Interview"). Empty lists mean "no restriction".

    Attributes:
        search: Case-insensitive substring of company, position or student name.
        stages: Keep only these stages.
        cohorts: Keep only these cohorts.
        needs_action: Keep only applications needing action.
        reason: Keep only applications flagged for this reason.
        assigned_advisor_id: Keep only applications assigned to this advisor.
        active_only: Keep only non-terminal stages.
        applied_from: Inclusive lower bound on applied_date. Naive values
            and date strings are read as UTC.
        applied_to: Inclusive upper bound on applied_date.
    """

    model_config = ConfigDict(extra="forbid")

    search: str = ""
    stages: list[ApplicationStage] = []
    cohorts: list[str] = []
    needs_action: bool = False
    reason: TriageReason | None = None
    assigned_advisor_id: str | None = None
    active_only: bool = False
    applied_from: datetime | None = None
    applied_to: datetime | None = None

    @field_validator("stages", mode="before")
    @classmethod
    def _split_stages(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [ApplicationStage.from_string(v) for v in parse_filter_value(value)]
        return value

    @field_validator("cohorts", mode="before")
    @classmethod
    def _split_cohorts(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_filter_value(value)
        return value

    @field_validator("applied_from", "applied_to")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def matches(self, item: TriagedApplication) -> bool:
        """Check whether one triaged application passes every filter."""
        app = item.application

        if self.search:
            needle = self.search.strip().casefold()
            haystack = (app.company_name, app.position_title, app.student_name)
            if needle and not any(
                text and needle in text.casefold() for text in haystack
            ):
                return False

        if self.stages and app.stage not in self.stages:
            return False
        if self.cohorts and app.cohort not in self.cohorts:
            return False
        if self.needs_action and not item.triage.needs_action:
            return False
        if self.reason is not None and self.reason not in item.triage.reasons:
            return False
        if (
            self.assigned_advisor_id is not None
            and app.assigned_advisor_id != self.assigned_advisor_id
        ):
            return False
        if self.active_only and not is_active(app.stage):
            return False

        if self.applied_from is not None or self.applied_to is not None:
            if app.applied_date is None:
                return False
            if self.applied_from is not None and app.applied_date < self.applied_from:
                return False
            if self.applied_to is not None and app.applied_date > self.applied_to:
                return False

        return True


DEFAULT_FILTERS = ApplicationFilters()
INBOX_FILTERS = ApplicationFilters(needs_action=True)


def apply_filters(
    items: Iterable[TriagedApplication],
    filters: ApplicationFilters | None = None,
) -> list[TriagedApplication]:
    """Keep the items matching filters, preserving order."""
    filters = filters or DEFAULT_FILTERS
    return [item for item in items if filters.matches(item)]


# =============================================================================
# Sorting
# =============================================================================


def _casefolded(text: str | None) -> str | None:
    return text.casefold() if text else None


_SORT_KEYS: dict[str, Callable[[TriagedApplication], Any]] = {
    "updated_at": lambda item: item.application.updated_at,
    "applied_date": lambda item: item.application.applied_date,
    "due_date": lambda item: item.application.next_step_date,
    "urgency": lambda item: item.triage.urgency.rank,
    "student_name": lambda item: _casefolded(item.application.student_name),
    "company_name": lambda item: _casefolded(item.application.company_name),
}

SORT_FIELDS = frozenset(_SORT_KEYS)


def sort_applications(
    items: Iterable[TriagedApplication],
    sort: str | None = DEFAULT_SORT,
) -> list[TriagedApplication]:
    """Sort triaged applications for the table view.

    Uses the "-field,field" syntax from core.filtering. Items missing a
    sort value go last in either direction; ties keep input order.

    Args:
        items: Items to sort.
        sort: Sort string; defaults to most recently updated first.

    Returns:
        New sorted list.

    Raises:
        ValidationError: A sort field is not one of SORT_FIELDS.
    """
    params = SortParams.from_query(sort)
    ordered = list(items)
    if params.is_empty():
        return ordered

    for field_name, _ in params.fields:
        if field_name not in _SORT_KEYS:
            raise ValidationError(
                f"Cannot sort by '{field_name}'. Valid fields: {sorted(SORT_FIELDS)}",
                code="INVALID_SORT_FIELD",
            )

    # Least significant key first; each pass is a stable sort.
    for field_name, direction in reversed(params.fields):
        key = _SORT_KEYS[field_name]
        present = [item for item in ordered if key(item) is not None]
        missing = [item for item in ordered if key(item) is None]
        present.sort(key=key, reverse=direction == "desc")
        ordered = present + missing

    return ordered


# =============================================================================
# Kanban
# =============================================================================


def group_by_stage(
    items: Iterable[TriagedApplication],
) -> dict[ApplicationStage, list[TriagedApplication]]:
    """Group items into kanban columns.

    Returns every stage in KANBAN_STAGES (empty columns included), in
    display order. Archived applications are dropped.
    """
    columns: dict[ApplicationStage, list[TriagedApplication]] = {
        stage: [] for stage in KANBAN_STAGES
    }
    for item in items:
        column = columns.get(item.application.stage)
        if column is not None:
            column.append(item)
    return columns


def needs_action_counts_by_stage(
    items: Iterable[TriagedApplication],
) -> dict[ApplicationStage, int]:
    """Count needs-action items per kanban column (Archived excluded)."""
    counts = {stage: 0 for stage in KANBAN_STAGES}
    for item in items:
        stage = item.application.stage
        if item.triage.needs_action and stage in counts:
            counts[stage] += 1
    return counts


# =============================================================================
# Selection
# =============================================================================


@dataclass
class ApplicationSelection:
    """Bulk-selection state owned by the caller.

    With select_all on, every visible application is selected except those
    in excluded_ids; otherwise only selected_ids are.
    """

    selected_ids: set[str] = field(default_factory=set)
    select_all: bool = False
    excluded_ids: set[str] = field(default_factory=set)

    def toggle(self, app_id: str) -> None:
        """Flip one application's selection."""
        if self.select_all:
            self.excluded_ids ^= {app_id}
        else:
            self.selected_ids ^= {app_id}

    def select_all_visible(self) -> None:
        """Select everything currently visible."""
        self.select_all = True
        self.selected_ids.clear()
        self.excluded_ids.clear()

    def clear(self) -> None:
        """Deselect everything."""
        self.select_all = False
        self.selected_ids.clear()
        self.excluded_ids.clear()

    def is_selected(self, app_id: str) -> bool:
        """Check one application's selection."""
        if self.select_all:
            return app_id not in self.excluded_ids
        return app_id in self.selected_ids

    def resolve(self, visible_ids: Iterable[str]) -> list[str]:
        """Selected IDs among visible_ids, in visible order.

        Selections of applications filtered out of view are not returned.
        """
        return [app_id for app_id in visible_ids if self.is_selected(app_id)]


# =============================================================================
# Statistics
# =============================================================================


@dataclass(frozen=True)
class ApplicationStats:
    """Pipeline counts for the console header.

    Attributes:
        total: All applications.
        active: Applications in a non-terminal stage.
        offers: Applications in Offer.
        accepted: Applications in Accepted.
        rejected: Applications in Rejected.
        students_with_apps: Distinct student_id values.
        needing_action: Applications needing action (each counted once).
        reason_breakdown: Applications flagged per reason.
        conversion_rate: (offers + accepted) / active as a rounded percentage.
    """

    total: int
    active: int
    offers: int
    accepted: int
    rejected: int
    students_with_apps: int
    needing_action: int
    reason_breakdown: dict[TriageReason, int]
    conversion_rate: int


def compute_stats(items: Sequence[TriagedApplication]) -> ApplicationStats:
    """Aggregate pipeline statistics.

    Args:
        items: Triaged applications for one caseload.

    Returns:
        ApplicationStats. conversion_rate is 0 when nothing is active.
    """
    breakdown = {reason: 0 for reason in TriageReason}
    stage_counts = {stage: 0 for stage in ApplicationStage}
    students: set[str] = set()
    needing_action = 0

    for item in items:
        stage_counts[item.application.stage] += 1
        if item.application.student_id is not None:
            students.add(item.application.student_id)
        if item.triage.needs_action:
            needing_action += 1
        for reason in item.triage.reasons:
            breakdown[reason] += 1

    active = sum(count for stage, count in stage_counts.items() if is_active(stage))
    offers = stage_counts[ApplicationStage.OFFER]
    accepted = stage_counts[ApplicationStage.ACCEPTED]
    conversion_rate = round((offers + accepted) / active * 100) if active else 0

    logger.debug("Computed stats for %d applications", len(items))

    return ApplicationStats(
        total=len(items),
        active=active,
        offers=offers,
        accepted=accepted,
        rejected=stage_counts[ApplicationStage.REJECTED],
        students_with_apps=len(students),
        needing_action=needing_action,
        reason_breakdown=breakdown,
        conversion_rate=conversion_rate,
    )

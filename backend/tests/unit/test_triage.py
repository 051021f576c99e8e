"""Tests for needs-action triage.

Tests verify:
1. Each rule fires on its own (no next step, overdue, due soon, stale)
2. Rules combine; overdue and due soon never both fire
3. Terminal applications never need action
4. Thresholds are configurable
5. Urgency levels follow the strongest reason
6. classify is pure: identical inputs give equal results
"""

from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from advisor_pipeline.core.config import Settings
from advisor_pipeline.models.application import ApplicationStage
from advisor_pipeline.services.stage_graph import ACTIVE_STAGES, TERMINAL_STAGES
from advisor_pipeline.services.triage import (
    DEFAULT_DUE_SOON_DAYS,
    DEFAULT_STALE_AFTER_DAYS,
    TRIAGE_REASON_LABELS,
    URGENCY_LABELS,
    TriageConfig,
    TriageReason,
    UrgencyLevel,
    classify,
    classify_all,
    days_since,
)
from tests.conftest import NOW, build_application

R = TriageReason

_TERMINAL = sorted(TERMINAL_STAGES, key=lambda s: s.value)

timestamps = st.datetimes(
    min_value=datetime(2024, 1, 1),
    max_value=datetime(2028, 12, 31),
    timezones=st.just(UTC),
)
optional_timestamps = st.one_of(st.none(), timestamps)
optional_text = st.one_of(st.none(), st.text(max_size=20))


# =============================================================================
# Days Since Update
# =============================================================================


class TestDaysSince:
    """Tests for the whole-day elapsed counter."""

    def test_floors_partial_days(self) -> None:
        """Thirteen days and 23 hours counts as 13."""
        assert days_since(NOW - timedelta(days=13, hours=23), NOW) == 13

    def test_counts_exact_days(self) -> None:
        """Exactly 14 days counts as 14."""
        assert days_since(NOW - timedelta(days=14), NOW) == 14

    def test_clamps_future_timestamps_to_zero(self) -> None:
        """An updated_at after now yields 0, not a negative count."""
        assert days_since(NOW + timedelta(days=3), NOW) == 0

    def test_same_instant_is_zero(self) -> None:
        """No time elapsed is 0 days."""
        assert days_since(NOW, NOW) == 0


# =============================================================================
# Individual Rules
# =============================================================================


class TestNoNextStep:
    """Rule: active application without a next step."""

    def test_flags_missing_next_step_without_date(self) -> None:
        """No next step and no date still needs action."""
        app = build_application(next_step=None, next_step_date=None)

        result = classify(app, NOW)

        assert result.needs_action is True
        assert result.reasons == {R.NO_NEXT_STEP}

    @pytest.mark.parametrize("next_step", ["", "   "])
    def test_flags_blank_next_step(self, next_step: str) -> None:
        """Empty or whitespace next steps count as missing."""
        app = build_application(next_step=next_step)

        assert R.NO_NEXT_STEP in classify(app, NOW).reasons

    def test_does_not_flag_populated_next_step(self) -> None:
        """A written next step clears the rule."""
        assert R.NO_NEXT_STEP not in classify(build_application(), NOW).reasons


class TestOverdue:
    """Rule: next step date in the past."""

    def test_flags_next_step_due_yesterday(self) -> None:
        """nextStepDate = now - 1 day is overdue, not due soon."""
        app = build_application(next_step_date=NOW - timedelta(days=1))

        result = classify(app, NOW)

        assert result.is_overdue is True
        assert result.is_due_soon is False
        assert result.needs_action is True
        assert result.reasons == {R.OVERDUE_NEXT_STEP}

    def test_one_second_late_is_overdue(self) -> None:
        """Any time strictly before now is overdue."""
        app = build_application(next_step_date=NOW - timedelta(seconds=1))

        assert classify(app, NOW).is_overdue is True

    def test_due_exactly_now_is_not_overdue(self) -> None:
        """A next step due at this instant is due soon, not overdue."""
        result = classify(build_application(next_step_date=NOW), NOW)

        assert result.is_overdue is False
        assert result.is_due_soon is True

    def test_overdue_without_next_step_text(self) -> None:
        """A date with no description reports both reasons."""
        app = build_application(next_step=None, next_step_date=NOW - timedelta(days=2))

        assert classify(app, NOW).reasons == {R.NO_NEXT_STEP, R.OVERDUE_NEXT_STEP}


class TestDueSoon:
    """Rule: next step due within the window."""

    def test_flags_next_step_due_in_two_days(self) -> None:
        """nextStepDate = now + 2 days is due soon."""
        app = build_application(next_step_date=NOW + timedelta(days=2))

        result = classify(app, NOW)

        assert result.is_due_soon is True
        assert result.is_overdue is False
        assert result.needs_action is True
        assert result.reasons == {R.DUE_SOON}

    def test_window_boundary_is_inclusive(self) -> None:
        """Exactly three days out is still due soon."""
        app = build_application(next_step_date=NOW + timedelta(days=3))

        assert classify(app, NOW).is_due_soon is True

    def test_just_past_window_is_not_due_soon(self) -> None:
        """Three days and a second out is on track."""
        app = build_application(next_step_date=NOW + timedelta(days=3, seconds=1))

        result = classify(app, NOW)

        assert result.is_due_soon is False
        assert result.needs_action is False

    def test_no_date_is_never_due_soon(self) -> None:
        """Without a date neither date rule fires."""
        result = classify(build_application(next_step_date=None), NOW)

        assert result.is_due_soon is False
        assert result.is_overdue is False


class TestStale:
    """Rule: no update for the staleness threshold."""

    def test_flags_twenty_days_without_update(self) -> None:
        """Staleness fires even with a healthy, non-overdue next step."""
        app = build_application(updated_at=NOW - timedelta(days=20))

        result = classify(app, NOW)

        assert result.is_stale is True
        assert result.needs_action is True
        assert result.reasons == {R.STALE_NO_ACTIVITY}
        assert result.days_since_update == 20

    def test_fourteen_days_is_stale(self) -> None:
        """The threshold is inclusive."""
        app = build_application(updated_at=NOW - timedelta(days=14))

        assert classify(app, NOW).is_stale is True

    def test_just_under_fourteen_days_is_not_stale(self) -> None:
        """Partial days do not round up."""
        app = build_application(updated_at=NOW - timedelta(days=13, hours=23))

        result = classify(app, NOW)

        assert result.is_stale is False
        assert result.days_since_update == 13

    def test_future_update_is_not_stale(self) -> None:
        """Clock skew in updated_at clamps to zero days."""
        app = build_application(updated_at=NOW + timedelta(hours=5))

        result = classify(app, NOW)

        assert result.days_since_update == 0
        assert result.is_stale is False


class TestCombinedRules:
    """Tests for applications hitting several rules."""

    def test_reports_every_applicable_reason(self) -> None:
        """Missing next step, overdue date and staleness all show up."""
        app = build_application(
            next_step=None,
            next_step_date=NOW - timedelta(days=1),
            updated_at=NOW - timedelta(days=30),
        )

        result = classify(app, NOW)

        assert result.reasons == {R.NO_NEXT_STEP, R.OVERDUE_NEXT_STEP, R.STALE_NO_ACTIVITY}
        assert result.is_overdue and result.is_stale
        assert not result.is_due_soon

    def test_healthy_application_needs_nothing(self) -> None:
        """Next step a week out and a fresh update mean no action."""
        result = classify(build_application(), NOW)

        assert result.needs_action is False
        assert result.reasons == frozenset()
        assert result.urgency == UrgencyLevel.NONE

    @pytest.mark.parametrize("stage", list(ACTIVE_STAGES))
    def test_rules_apply_to_every_active_stage(self, stage: ApplicationStage) -> None:
        """Offer is active and triaged like the earlier stages."""
        app = build_application(stage=stage, next_step=None)

        assert classify(app, NOW).needs_action is True


# =============================================================================
# Terminal Stages
# =============================================================================


class TestTerminalStages:
    """Terminal applications never need action."""

    @pytest.mark.parametrize("stage", _TERMINAL)
    def test_ignores_every_rule_when_terminal(self, stage: ApplicationStage) -> None:
        """Overdue, missing next step and stale fields are all ignored."""
        app = build_application(
            stage=stage,
            next_step=None,
            next_step_date=NOW - timedelta(days=5),
            updated_at=NOW - timedelta(days=60),
        )

        result = classify(app, NOW)

        assert result.needs_action is False
        assert result.reasons == frozenset()
        assert not (result.is_overdue or result.is_due_soon or result.is_stale)
        assert result.urgency == UrgencyLevel.NONE

    def test_still_reports_days_since_update(self) -> None:
        """The elapsed count is informational for terminal records too."""
        app = build_application(
            stage=ApplicationStage.ARCHIVED, updated_at=NOW - timedelta(days=45)
        )

        assert classify(app, NOW).days_since_update == 45

    @given(
        stage=st.sampled_from(_TERMINAL),
        next_step=optional_text,
        next_step_date=optional_timestamps,
        updated_at=timestamps,
    )
    def test_terminal_never_needs_action(
        self,
        stage: ApplicationStage,
        next_step: str | None,
        next_step_date: datetime | None,
        updated_at: datetime,
    ) -> None:
        """Property: terminal implies no action, whatever the field values."""
        app = build_application(
            stage=stage,
            next_step=next_step,
            next_step_date=next_step_date,
            updated_at=updated_at,
        )

        result = classify(app, NOW)

        assert result.needs_action is False
        assert result.reasons == frozenset()


# =============================================================================
# Configuration
# =============================================================================


class TestTriageConfig:
    """Tests for overridable thresholds."""

    def test_defaults_are_three_and_fourteen_days(self) -> None:
        """Defaults match the documented windows."""
        config = TriageConfig()

        assert config.due_soon_window == timedelta(days=DEFAULT_DUE_SOON_DAYS)
        assert config.stale_after_days == DEFAULT_STALE_AFTER_DAYS
        assert DEFAULT_DUE_SOON_DAYS == 3
        assert DEFAULT_STALE_AFTER_DAYS == 14

    def test_wider_due_soon_window(self) -> None:
        """A seven-day window catches a step due in five days."""
        app = build_application(next_step_date=NOW + timedelta(days=5))
        config = TriageConfig(due_soon_window=timedelta(days=7))

        assert classify(app, NOW).is_due_soon is False
        assert classify(app, NOW, config).is_due_soon is True

    def test_longer_stale_threshold(self) -> None:
        """Raising the threshold clears staleness for a 20-day-old update."""
        app = build_application(updated_at=NOW - timedelta(days=20))
        config = TriageConfig(stale_after_days=30)

        assert classify(app, NOW, config).is_stale is False

    def test_from_settings_uses_configured_days(self) -> None:
        """Settings-backed config converts day counts."""
        config = TriageConfig.from_settings(
            Settings(triage_due_soon_days=5, triage_stale_days=21)
        )

        assert config.due_soon_window == timedelta(days=5)
        assert config.stale_after_days == 21


# =============================================================================
# Urgency
# =============================================================================


class TestUrgency:
    """Tests for urgency levels."""

    def test_overdue_is_critical(self) -> None:
        """Past-due next steps are the most urgent."""
        app = build_application(next_step_date=NOW - timedelta(hours=1))

        assert classify(app, NOW).urgency == UrgencyLevel.CRITICAL

    def test_due_within_a_day_is_high(self) -> None:
        """Due in twelve hours reads as "due today"."""
        app = build_application(next_step_date=NOW + timedelta(hours=12))

        assert classify(app, NOW).urgency == UrgencyLevel.HIGH

    def test_due_in_two_days_is_medium(self) -> None:
        """Due soon but not today is medium."""
        app = build_application(next_step_date=NOW + timedelta(days=2))

        assert classify(app, NOW).urgency == UrgencyLevel.MEDIUM

    def test_stale_only_is_low(self) -> None:
        """Staleness alone is low urgency."""
        app = build_application(updated_at=NOW - timedelta(days=20))

        assert classify(app, NOW).urgency == UrgencyLevel.LOW

    def test_missing_next_step_only_is_low(self) -> None:
        """A missing next step alone is low urgency."""
        app = build_application(next_step=None, next_step_date=None)

        assert classify(app, NOW).urgency == UrgencyLevel.LOW

    def test_overdue_outranks_staleness(self) -> None:
        """The strongest reason wins."""
        app = build_application(
            next_step_date=NOW - timedelta(days=1),
            updated_at=NOW - timedelta(days=20),
        )

        assert classify(app, NOW).urgency == UrgencyLevel.CRITICAL

    def test_rank_orders_levels(self) -> None:
        """Ranks descend from critical to none."""
        ranks = [level.rank for level in UrgencyLevel]

        assert ranks == sorted(ranks, reverse=True)
        assert UrgencyLevel.NONE.rank == 0

    def test_every_level_and_reason_has_a_label(self) -> None:
        """Display labels cover every enum member."""
        assert set(URGENCY_LABELS) == set(UrgencyLevel)
        assert set(TRIAGE_REASON_LABELS) == set(TriageReason)


# =============================================================================
# Purity and Batch Classification
# =============================================================================


class TestPurity:
    """classify is a pure function of its inputs."""

    @given(
        stage=st.sampled_from(list(ApplicationStage)),
        next_step=optional_text,
        next_step_date=optional_timestamps,
        updated_at=timestamps,
    )
    def test_identical_inputs_give_equal_results(
        self,
        stage: ApplicationStage,
        next_step: str | None,
        next_step_date: datetime | None,
        updated_at: datetime,
    ) -> None:
        """Property: calling twice returns structurally equal results."""
        app = build_application(
            stage=stage,
            next_step=next_step,
            next_step_date=next_step_date,
            updated_at=updated_at,
        )

        assert classify(app, NOW) == classify(app, NOW)

    @given(
        stage=st.sampled_from(list(ApplicationStage)),
        next_step=optional_text,
        next_step_date=optional_timestamps,
        updated_at=timestamps,
    )
    def test_result_invariants_hold(
        self,
        stage: ApplicationStage,
        next_step: str | None,
        next_step_date: datetime | None,
        updated_at: datetime,
    ) -> None:
        """Reasons are non-empty iff action is needed; overdue excludes due soon."""
        app = build_application(
            stage=stage,
            next_step=next_step,
            next_step_date=next_step_date,
            updated_at=updated_at,
        )

        result = classify(app, NOW)

        assert result.needs_action == bool(result.reasons)
        assert not (result.is_overdue and result.is_due_soon)
        assert result.days_since_update >= 0
        assert (result.urgency == UrgencyLevel.NONE) == (not result.needs_action)


class TestClassifyAll:
    """Tests for batch triage."""

    def test_preserves_order_and_pairs_each_application(self) -> None:
        """Output is a per-element map in input order."""
        apps = [
            build_application(id="a", next_step=None),
            build_application(id="b"),
            build_application(id="c", stage=ApplicationStage.REJECTED),
        ]

        triaged = classify_all(apps, NOW)

        assert [item.application.id for item in triaged] == ["a", "b", "c"]
        assert [item.triage.needs_action for item in triaged] == [True, False, False]
        assert triaged[0].triage == classify(apps[0], NOW)

    def test_empty_input_gives_empty_output(self) -> None:
        """No applications, no results."""
        assert classify_all([], NOW) == []

    def test_accepts_any_iterable_and_config(self) -> None:
        """Generators work and the config is applied to each element."""
        apps = (
            build_application(id=str(i), next_step_date=NOW + timedelta(days=5))
            for i in range(3)
        )
        config = TriageConfig(due_soon_window=timedelta(days=7))

        triaged = classify_all(apps, NOW, config)

        assert all(item.triage.is_due_soon for item in triaged)

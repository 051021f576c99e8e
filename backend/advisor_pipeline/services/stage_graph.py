"""Application stage transitions.

Implements the state machine for application stages:
- Prospect  → Applied, Withdrawn, Archived
- Applied   → Interview, Rejected, Withdrawn, Archived
- Interview → Offer, Rejected, Withdrawn, Archived
- Offer     → Accepted, Rejected, Withdrawn, Archived
- Accepted, Rejected, Withdrawn, Archived → (terminal, no transitions)

Rejected, Withdrawn and Archived need a written reason. Accepted does not.

Every function here is a pure query. Callers that pass validation are
responsible for writing the new stage, appending the reason to notes and
bumping updated_at (see services.application_workflow).
"""

import logging
from dataclasses import dataclass

from advisor_pipeline.core.errors import APIError
from advisor_pipeline.models.application import ApplicationStage

logger = logging.getLogger(__name__)

# =============================================================================
# Exceptions
# =============================================================================


class TransitionError(APIError):
    """Base class for rejected stage transitions.

    Attributes:
        current_stage: Stage the application is in.
        target_stage: Stage that was requested.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int,
        current_stage: ApplicationStage,
        target_stage: ApplicationStage,
    ) -> None:
        self.current_stage = current_stage
        self.target_stage = target_stage
        super().__init__(code=code, message=message, status_code=status_code)


class IllegalTransitionError(TransitionError):
    """Target stage is not reachable in one step from the current stage.

    Covers every attempt to leave a terminal stage.
    """

    def __init__(
        self,
        current_stage: ApplicationStage,
        target_stage: ApplicationStage,
        valid_transitions: list[ApplicationStage],
    ) -> None:
        """Initialize with transition details.

        Args:
            current_stage: The current stage of the application.
            target_stage: The attempted target stage.
            valid_transitions: List of valid target stages from current.
        """
        self.valid_transitions = valid_transitions
        valid_names = [s.value for s in valid_transitions]
        super().__init__(
            code="ILLEGAL_TRANSITION",
            message=(
                f"Cannot transition from {current_stage.value} to {target_stage.value}. "
                f"Valid transitions: {valid_names or 'none (terminal stage)'}"
            ),
            status_code=422,
            current_stage=current_stage,
            target_stage=target_stage,
        )


class MissingReasonError(TransitionError):
    """A reason-required terminal transition was requested without a reason."""

    def __init__(
        self,
        current_stage: ApplicationStage,
        target_stage: ApplicationStage,
    ) -> None:
        super().__init__(
            code="MISSING_REASON",
            message=f"A reason is required to move an application to {target_stage.value}.",
            status_code=400,
            current_stage=current_stage,
            target_stage=target_stage,
        )


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class TransitionValidation:
    """Outcome of validate_transition.

    Attributes:
        current_stage: Stage the application is in.
        target_stage: Stage that was requested.
        error: The rejection, or None when the transition is allowed.
    """

    current_stage: ApplicationStage
    target_stage: ApplicationStage
    error: TransitionError | None = None

    @property
    def ok(self) -> bool:
        """True when the transition may be applied."""
        return self.error is None


# =============================================================================
# State Machine Definition
# =============================================================================

# Values are in display priority: forward progress first, then outcomes,
# then voluntary exit.
_VALID_TRANSITIONS: dict[ApplicationStage, tuple[ApplicationStage, ...]] = {
    ApplicationStage.PROSPECT: (
        ApplicationStage.APPLIED,
        ApplicationStage.WITHDRAWN,
        ApplicationStage.ARCHIVED,
    ),
    ApplicationStage.APPLIED: (
        ApplicationStage.INTERVIEW,
        ApplicationStage.REJECTED,
        ApplicationStage.WITHDRAWN,
        ApplicationStage.ARCHIVED,
    ),
    ApplicationStage.INTERVIEW: (
        ApplicationStage.OFFER,
        ApplicationStage.REJECTED,
        ApplicationStage.WITHDRAWN,
        ApplicationStage.ARCHIVED,
    ),
    ApplicationStage.OFFER: (
        ApplicationStage.ACCEPTED,
        ApplicationStage.REJECTED,
        ApplicationStage.WITHDRAWN,
        ApplicationStage.ARCHIVED,
    ),
    ApplicationStage.ACCEPTED: (),
    ApplicationStage.REJECTED: (),
    ApplicationStage.WITHDRAWN: (),
    ApplicationStage.ARCHIVED: (),
}

TERMINAL_STAGES: frozenset[ApplicationStage] = frozenset(
    {
        ApplicationStage.ACCEPTED,
        ApplicationStage.REJECTED,
        ApplicationStage.WITHDRAWN,
        ApplicationStage.ARCHIVED,
    }
)

REASON_REQUIRED_STAGES: frozenset[ApplicationStage] = frozenset(
    {
        ApplicationStage.REJECTED,
        ApplicationStage.WITHDRAWN,
        ApplicationStage.ARCHIVED,
    }
)

ACTIVE_STAGES: tuple[ApplicationStage, ...] = tuple(
    stage for stage in ApplicationStage if stage not in TERMINAL_STAGES
)


# =============================================================================
# Public Functions
# =============================================================================


def get_next_stages(current: ApplicationStage) -> list[ApplicationStage]:
    """Get stages reachable in one transition, in display priority order.

    Terminal stages return an empty list rather than raising, so a stage
    picker can simply render nothing.

    Args:
        current: The current stage.

    Returns:
        List of stages that can be transitioned to.
    """
    return list(_VALID_TRANSITIONS[current])


def is_terminal(stage: ApplicationStage) -> bool:
    """Check if a stage has no outgoing transitions."""
    return stage in TERMINAL_STAGES


def is_active(stage: ApplicationStage) -> bool:
    """Check if a stage can still transition (and is subject to triage)."""
    return stage not in TERMINAL_STAGES


def requires_reason(stage: ApplicationStage) -> bool:
    """Check if moving into a stage needs a written reason.

    True for Rejected, Withdrawn and Archived. Accepted is terminal but
    needs no explanation.
    """
    return stage in REASON_REQUIRED_STAGES


def is_valid_transition(
    current: ApplicationStage,
    target: ApplicationStage,
) -> bool:
    """Check if a stage transition is in the graph.

    Does not consider reason requirements; use validate_transition for that.

    Args:
        current: The current stage of the application.
        target: The desired target stage.

    Returns:
        True if the transition is allowed, False otherwise.
    """
    return target in _VALID_TRANSITIONS[current]


def validate_transition(
    current: ApplicationStage,
    target: ApplicationStage,
    reason: str | None = None,
) -> TransitionValidation:
    """Validate a requested stage change without applying it.

    Graph legality is checked before the reason, so a request to leave a
    terminal stage reports ILLEGAL_TRANSITION even with no reason given.

    Args:
        current: The current stage of the application.
        target: The desired target stage.
        reason: Advisor-supplied explanation. Whitespace-only counts as empty.

    Returns:
        TransitionValidation whose error is None when the change is allowed,
        otherwise an IllegalTransitionError or MissingReasonError.
    """
    if not is_valid_transition(current, target):
        logger.debug(
            "Rejected illegal transition %s -> %s", current.value, target.value
        )
        return TransitionValidation(
            current_stage=current,
            target_stage=target,
            error=IllegalTransitionError(
                current_stage=current,
                target_stage=target,
                valid_transitions=get_next_stages(current),
            ),
        )

    if requires_reason(target) and not (reason and reason.strip()):
        logger.debug("Rejected transition to %s without reason", target.value)
        return TransitionValidation(
            current_stage=current,
            target_stage=target,
            error=MissingReasonError(current_stage=current, target_stage=target),
        )

    return TransitionValidation(current_stage=current, target_stage=target)

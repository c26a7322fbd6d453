"""
Status workflow for assessment activities.

Every operation that changes ``CurrentActivity.status`` goes through
``apply_transition``; ``can_transition`` is the single legality check.
"""
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from markbook.models.activity import ActivityStatus, CurrentActivity
from markbook.utils.helpers import get_utc_now

S = ActivityStatus

TRANSITIONS: Dict[ActivityStatus, FrozenSet[ActivityStatus]] = {
    S.NOTSET: frozenset({S.INPROGRESS, S.DISCONTINUED}),
    S.INPROGRESS: frozenset({S.SUBMITTED, S.DISCONTINUED}),
    # SUBMITTED -> INPROGRESS hands the work back unmarked
    S.SUBMITTED: frozenset({S.INMARKING, S.INPROGRESS, S.DISCONTINUED}),
    # INMARKING -> SUBMITTED releases the submission without a result
    S.INMARKING: frozenset({S.PASSED, S.REDOING, S.NOTPASSED, S.SUBMITTED, S.DISCONTINUED}),
    S.REDOING: frozenset({S.RESUBMITTED, S.DISCONTINUED}),
    S.RESUBMITTED: frozenset({S.INREMARKING, S.REDOING, S.DISCONTINUED}),
    S.INREMARKING: frozenset({S.PASSED, S.REDOING, S.NOTPASSED, S.RESUBMITTED, S.DISCONTINUED}),
    S.PASSED: frozenset(),
    S.NOTPASSED: frozenset(),
    S.DISCONTINUED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

# Statuses in which a student may still change answers or attachments
EDITABLE_STATUSES = frozenset({S.NOTSET, S.INPROGRESS, S.REDOING})

# Submission status -> marking status entered when a teacher opens it
MARKING_STARTS = {
    S.SUBMITTED: S.INMARKING,
    S.RESUBMITTED: S.INREMARKING,
}
MARKING_STATUSES = frozenset(MARKING_STARTS.values())

# A student's submit request lands on a different status after a redo
SUBMIT_TARGETS = {
    S.INPROGRESS: S.SUBMITTED,
    S.REDOING: S.RESUBMITTED,
}

FINAL_MARK_STATUSES = frozenset({S.PASSED, S.REDOING})


class WorkflowError(Exception):
    """Raised when an activity cannot move to the requested status."""

    def __init__(self, current: ActivityStatus, target: ActivityStatus, message: Optional[str] = None):
        self.current = current
        self.target = target
        super().__init__(message or f"Cannot change activity status from {current.value} to {target.value}")


def can_transition(current: ActivityStatus, target: ActivityStatus) -> bool:
    if current == target:
        return True
    return target in TRANSITIONS.get(current, frozenset())


def _stamp(activity: CurrentActivity, attribute: str, now: datetime, supplied: frozenset) -> None:
    if attribute not in supplied:
        setattr(activity, attribute, now)


def apply_transition(
    activity: CurrentActivity,
    target: ActivityStatus,
    now: Optional[datetime] = None,
    supplied_dates: frozenset = frozenset(),
) -> ActivityStatus:
    """
    Move an activity to ``target``, stamping the matching date columns.

    Args:
        activity: The activity to update (not flushed)
        target: Requested status
        now: Timestamp to stamp, defaults to the current UTC time
        supplied_dates: Date attributes the caller set explicitly; these are
            never overwritten

    Returns:
        The previous status

    Raises:
        WorkflowError: If the transition is not allowed
    """
    current = ActivityStatus(activity.status)
    target = ActivityStatus(target)
    if not can_transition(current, target):
        raise WorkflowError(current, target)
    if current == target:
        return current

    now = now or get_utc_now()
    if target == S.INPROGRESS and current == S.NOTSET and activity.date_set is None:
        _stamp(activity, "date_set", now, supplied_dates)
    elif target == S.SUBMITTED and current == S.INPROGRESS:
        _stamp(activity, "date_submitted", now, supplied_dates)
    elif target == S.RESUBMITTED:
        _stamp(activity, "date_resubmitted", now, supplied_dates)
    elif target in (S.PASSED, S.REDOING, S.NOTPASSED) and current in MARKING_STATUSES:
        _stamp(activity, "date_marked", now, supplied_dates)

    if target in (S.PASSED, S.NOTPASSED):
        _stamp(activity, "date_complete", now, supplied_dates)

    activity.status = target
    return current


def start_work(activity: CurrentActivity, now: Optional[datetime] = None) -> None:
    """Open a NOTSET activity for editing; editable activities are left alone."""
    current = ActivityStatus(activity.status)
    if current not in EDITABLE_STATUSES:
        raise WorkflowError(current, S.INPROGRESS, f"Activity is read-only while {current.value}")
    if current == S.NOTSET:
        apply_transition(activity, S.INPROGRESS, now)


def submit(activity: CurrentActivity, now: Optional[datetime] = None) -> ActivityStatus:
    """Submit an activity for (re)marking and return the status it landed on."""
    start_work(activity, now)
    current = ActivityStatus(activity.status)
    apply_transition(activity, SUBMIT_TARGETS[current], now)
    return ActivityStatus(activity.status)


def start_marking(activity: CurrentActivity, now: Optional[datetime] = None) -> None:
    """Move a submitted activity into marking; activities already in marking are left alone."""
    current = ActivityStatus(activity.status)
    if current in MARKING_STARTS:
        apply_transition(activity, MARKING_STARTS[current], now)
    elif current not in MARKING_STATUSES:
        raise WorkflowError(current, S.INMARKING, f"Activity is not ready for marking while {current.value}")


def finish_marking(activity: CurrentActivity, final_status: ActivityStatus, now: Optional[datetime] = None) -> None:
    """Record the final marking result. ``dateComplete`` is cleared unless the unit was passed."""
    final_status = ActivityStatus(final_status)
    if final_status not in FINAL_MARK_STATUSES:
        raise WorkflowError(ActivityStatus(activity.status), final_status, "Invalid finalStatus. Use PASSED or REDOING")
    now = now or get_utc_now()
    start_marking(activity, now)
    apply_transition(activity, final_status, now)
    activity.date_marked = now
    if final_status != S.PASSED:
        activity.date_complete = None

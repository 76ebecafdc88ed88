# invitation_routing/process_state.py
"""
Pure transitions over ``ProcessState``.

Every function returns a new state, or the *same* object when the transition is
not permitted (resolved process, match already recorded, flag already set).
Callers compare by identity to learn whether anything changed.
"""

from __future__ import annotations

from invitation_routing.contracts import Destination, NotificationRecord, ProcessState, RouterPhase


def initial_state() -> ProcessState:
    return ProcessState()


def with_match(state: ProcessState, notification: NotificationRecord) -> ProcessState:
    if not state.in_progress or state.matched_notification is not None:
        return state
    return state.model_copy(update={"matched_notification": notification, "phase": RouterPhase.DECIDING})


def with_delay_elapsed(state: ProcessState) -> ProcessState:
    if not state.in_progress or state.delay_elapsed:
        return state
    return state.model_copy(update={"delay_elapsed": True})


def with_delay_notice(state: ProcessState) -> ProcessState:
    if not state.in_progress or state.delay_notice_shown:
        return state
    return state.model_copy(update={"delay_notice_shown": True})


def resolve(state: ProcessState, destination: Destination, *, reason: str) -> ProcessState:
    if not state.in_progress:
        return state
    return state.model_copy(
        update={
            "in_progress": False,
            "phase": RouterPhase.RESOLVED,
            "destination": destination,
            "resolution_reason": reason,
        }
    )

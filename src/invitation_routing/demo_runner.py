from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from invitation_routing.adapters.accessibility import RecordingAnnouncer
from invitation_routing.adapters.navigator import RecordingNavigator
from invitation_routing.adapters.notification_feed import InMemoryNotificationFeed
from invitation_routing.adapters.record_store import InMemoryRecordStore
from invitation_routing.adapters.scheduler import ManualScheduler
from invitation_routing.config import load_config
from invitation_routing.contracts import ConnectionRecord, Destination, InvitationRecord, parse_notification
from invitation_routing.engine import ConnectionProcess

EVENT_TYPES = ("invitation", "connection", "notification", "dismiss", "close")


@dataclass(frozen=True)
class SessionExecution:
    scenario_id: str
    invitation_id: str
    destinations: list[dict[str, Any]]
    navigation_modes: list[str]
    announcements: list[str]
    in_progress: bool
    delay_elapsed: bool
    resolution_reason: str | None
    resolved_at_ms: float | None
    transitions: list[dict[str, Any]]


class _ClockedNavigator(RecordingNavigator):
    def __init__(self, scheduler: ManualScheduler) -> None:
        super().__init__()
        self._scheduler = scheduler
        self.navigated_at_ms: list[float] = []

    def navigate(self, destination: Destination) -> None:
        self.navigated_at_ms.append(self._scheduler.now_ms)
        super().navigate(destination)


def load_scenario_packs(packs_dir: Path) -> list[dict[str, Any]]:
    packs: list[dict[str, Any]] = []
    for path in sorted(packs_dir.glob("*.json")):
        payload = json.loads(path.read_text(encoding="utf-8"))
        payload["_source"] = str(path)
        packs.append(payload)
    return packs


def _normalize_events(raw_events: list[Any]) -> list[dict[str, Any]]:
    events: list[dict[str, Any]] = []
    for event in raw_events:
        if isinstance(event, str):
            event = {"type": event}
        if not isinstance(event, dict):
            continue
        normalized = {str(k): v for k, v in event.items()}
        if normalized.get("type") not in EVENT_TYPES:
            raise ValueError(f"unknown scenario event type: {normalized.get('type')!r}")
        normalized["at_ms"] = float(normalized.get("at_ms", 0))
        events.append(normalized)
    # stable: same-time events keep file order
    return sorted(events, key=lambda e: e["at_ms"])


def run_session(pack: dict[str, Any], *, logger: Optional[logging.Logger] = None) -> SessionExecution:
    invitation_id = str(pack["invitation_id"])
    scheduler = ManualScheduler()
    store = InMemoryRecordStore()
    feed = InMemoryNotificationFeed()
    navigator = _ClockedNavigator(scheduler)
    announcer = RecordingAnnouncer()
    process = ConnectionProcess(
        invitation_id,
        record_store=store,
        notification_feed=feed,
        navigator=navigator,
        scheduler=scheduler,
        config=load_config(pack.get("config")),
        announcer=announcer,
        openid_uri=pack.get("openid_uri"),
        logger=logger,
    )

    process.start()

    for event in _normalize_events(list(pack.get("events", []))):
        scheduler.advance_to(event["at_ms"])
        kind = event["type"]
        if kind == "invitation":
            store.put_invitation(InvitationRecord.model_validate(event["record"]))
        elif kind == "connection":
            store.put_connection(ConnectionRecord.model_validate(event["record"]), invitation_id=invitation_id)
        elif kind == "notification":
            feed.publish(parse_notification(event["record"]))
        elif kind == "dismiss":
            process.dismiss()
        elif kind == "close":
            process.close()

    run_until_ms = pack.get("run_until_ms")
    if run_until_ms is not None:
        scheduler.advance_to(float(run_until_ms))
    process.close()

    state = process.state
    return SessionExecution(
        scenario_id=str(pack.get("scenario_id") or invitation_id),
        invitation_id=invitation_id,
        destinations=[d.model_dump(mode="json") for d in navigator.destinations],
        navigation_modes=[mode.value for mode in navigator.modes],
        announcements=list(announcer.messages),
        in_progress=state.in_progress,
        delay_elapsed=state.delay_elapsed,
        resolution_reason=state.resolution_reason,
        resolved_at_ms=navigator.navigated_at_ms[0] if navigator.navigated_at_ms else None,
        transitions=[
            {
                "event": t.event,
                "phase": t.phase.value,
                "in_progress": t.in_progress,
                "reason": t.reason,
            }
            for t in process.history
        ],
    )


def summarize(executions: list[SessionExecution]) -> dict[str, Any]:
    total = len(executions)
    resolved = [e for e in executions if not e.in_progress]
    by_screen: dict[str, int] = {}
    for execution in resolved:
        for destination in execution.destinations:
            screen = str(destination.get("screen"))
            by_screen[screen] = by_screen.get(screen, 0) + 1

    delays = [e for e in executions if e.delay_elapsed]
    resolve_times = [e.resolved_at_ms for e in resolved if e.resolved_at_ms is not None]

    return {
        "sessions": total,
        "resolved_rate": round(len(resolved) / total, 4) if total else 0.0,
        "delay_rate": round(len(delays) / total, 4) if total else 0.0,
        "mean_resolve_ms": round(sum(resolve_times) / len(resolve_times), 2) if resolve_times else None,
        "destinations": dict(sorted(by_screen.items())),
    }


def run_packs(packs_dir: Path, *, logger: Optional[logging.Logger] = None) -> dict[str, Any]:
    packs = load_scenario_packs(packs_dir)
    executions = [run_session(pack, logger=logger) for pack in packs]
    return {
        "sessions": [
            {
                "scenario_id": execution.scenario_id,
                "invitation_id": execution.invitation_id,
                "destinations": execution.destinations,
                "navigation_modes": execution.navigation_modes,
                "announcements": execution.announcements,
                "in_progress": execution.in_progress,
                "resolution_reason": execution.resolution_reason,
                "resolved_at_ms": execution.resolved_at_ms,
                "transitions": execution.transitions,
            }
            for execution in executions
        ],
        "summary_metrics": summarize(executions),
    }

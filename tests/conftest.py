from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pytest

from invitation_routing.adapters.accessibility import RecordingAnnouncer, StackBackPressInterceptor
from invitation_routing.adapters.navigator import RecordingNavigator
from invitation_routing.adapters.notification_feed import InMemoryNotificationFeed
from invitation_routing.adapters.record_store import InMemoryRecordStore
from invitation_routing.adapters.scheduler import ManualScheduler
from invitation_routing.config import ENV_AUTO_REDIRECT, ENV_DELAY_MS, RoutingConfig
from invitation_routing.contracts import (
    BasicMessageNotification,
    ConnectionRecord,
    CredentialExchangeNotification,
    InvitationRecord,
    ProofExchangeNotification,
    SdJwtVcNotification,
    W3cCredentialNotification,
)
from invitation_routing.engine import ConnectionProcess

INVITATION_ID = "oob:test"


@pytest.fixture(autouse=True)
def _clear_routing_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (ENV_DELAY_MS, ENV_AUTO_REDIRECT):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_invitation() -> Callable[..., InvitationRecord]:
    def _make_invitation(
        *,
        invitation_id: str = INVITATION_ID,
        goal_code: str | None = None,
        thread_ids: tuple[str, ...] = (),
    ) -> InvitationRecord:
        return InvitationRecord(
            id=invitation_id,
            goal_code=goal_code,
            invitation_request_thread_ids=frozenset(thread_ids),
        )

    return _make_invitation


@pytest.fixture
def make_connection() -> Callable[..., ConnectionRecord]:
    def _make_connection(*, connection_id: str = "conn:1", out_of_band_id: str = INVITATION_ID) -> ConnectionRecord:
        return ConnectionRecord(id=connection_id, out_of_band_id=out_of_band_id)

    return _make_connection


@pytest.fixture
def make_notification() -> Callable[..., Any]:
    kinds: dict[str, Any] = {
        "basic": BasicMessageNotification,
        "credential": CredentialExchangeNotification,
        "proof": ProofExchangeNotification,
        "w3c": W3cCredentialNotification,
        "sdjwt": SdJwtVcNotification,
    }

    def _make_notification(kind: str, notification_id: str, **fields: Any) -> Any:
        return kinds[kind](id=notification_id, **fields)

    return _make_notification


@dataclass
class ProcessHarness:
    process: ConnectionProcess
    store: InMemoryRecordStore
    feed: InMemoryNotificationFeed
    navigator: RecordingNavigator
    scheduler: ManualScheduler
    announcer: RecordingAnnouncer
    back_press: StackBackPressInterceptor


@pytest.fixture
def make_harness() -> Callable[..., ProcessHarness]:
    def _make_harness(
        *,
        config: RoutingConfig | None = None,
        openid_uri: str | None = None,
        navigator: Any = None,
        start: bool = True,
    ) -> ProcessHarness:
        store = InMemoryRecordStore()
        feed = InMemoryNotificationFeed()
        scheduler = ManualScheduler()
        announcer = RecordingAnnouncer()
        back_press = StackBackPressInterceptor()
        nav = navigator or RecordingNavigator()
        process = ConnectionProcess(
            INVITATION_ID,
            record_store=store,
            notification_feed=feed,
            navigator=nav,
            scheduler=scheduler,
            config=config,
            announcer=announcer,
            back_press=back_press,
            openid_uri=openid_uri,
        )
        if start:
            process.start()
        return ProcessHarness(process, store, feed, nav, scheduler, announcer, back_press)

    return _make_harness

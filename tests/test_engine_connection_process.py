from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import pytest

from invitation_routing.adapters.accessibility import TAKING_TOO_LONG_MESSAGE_KEY
from invitation_routing.adapters.navigator import RecordingNavigator
from invitation_routing.config import RoutingConfig
from invitation_routing.contracts import (
    ChatDestination,
    ConnectionRecord,
    CredentialOfferDestination,
    ExternalCredentialDetailDestination,
    HomeDestination,
    InvitationRecord,
    ProofReviewDestination,
    RouterPhase,
)
from invitation_routing.errors import ProcessLifecycleError

if TYPE_CHECKING:
    from conftest import ProcessHarness

INVITATION_ID = "oob:test"


def test_unknown_goal_code_with_connection_resolves_to_chat_without_notifications(
    make_harness: Callable[..., ProcessHarness],
    make_invitation: Callable[..., InvitationRecord],
    make_connection: Callable[..., ConnectionRecord],
) -> None:
    h = make_harness()
    h.store.put_invitation(make_invitation(goal_code="unknown.goal"))
    assert h.navigator.destinations == []

    h.store.put_connection(make_connection())

    assert h.navigator.destinations == [ChatDestination(connection_id="conn:1")]
    assert h.process.state.in_progress is False
    assert h.process.state.matched_notification is None
    assert h.process.watchdog.cancelled is True


def test_connection_already_present_at_start_resolves_immediately(
    make_harness: Callable[..., ProcessHarness],
    make_invitation: Callable[..., InvitationRecord],
    make_connection: Callable[..., ConnectionRecord],
) -> None:
    h = make_harness(start=False)
    h.store.put_invitation(make_invitation(goal_code=None))
    h.store.put_connection(make_connection())

    h.process.start()

    assert h.navigator.destinations == [ChatDestination(connection_id="conn:1")]
    assert h.scheduler.pending == 0


def test_issue_goal_code_routes_matching_credential_exchange_to_offer(
    make_harness: Callable[..., ProcessHarness],
    make_invitation: Callable[..., InvitationRecord],
    make_connection: Callable[..., ConnectionRecord],
    make_notification: Callable[..., Any],
) -> None:
    h = make_harness()
    h.store.put_invitation(make_invitation(goal_code="aries.vc.issue"))
    h.store.put_connection(make_connection())
    h.feed.publish(make_notification("basic", "m1", connection_id="conn:1"))
    h.feed.publish(make_notification("credential", "cred:other", connection_id="conn:other"))
    assert h.navigator.destinations == []
    assert h.process.state.in_progress is True

    h.feed.publish(make_notification("credential", "cred:1", connection_id="conn:1"))

    assert h.navigator.destinations == [CredentialOfferDestination(credential_id="cred:1")]
    assert h.process.state.phase is RouterPhase.RESOLVED


@pytest.mark.parametrize("goal_code", ["aries.vc.verify", "aries.vc.verify.once"])
def test_verify_goal_codes_route_matching_proof_to_review(
    goal_code: str,
    make_harness: Callable[..., ProcessHarness],
    make_invitation: Callable[..., InvitationRecord],
    make_connection: Callable[..., ConnectionRecord],
    make_notification: Callable[..., Any],
) -> None:
    h = make_harness()
    h.feed.publish(make_notification("proof", "proof:1", connection_id="conn:1"))
    h.store.put_invitation(make_invitation(goal_code=goal_code))
    # a proof for an unknown connection does not match before the connection forms
    assert h.process.state.matched_notification is None

    h.store.put_connection(make_connection())

    assert h.navigator.destinations == [ProofReviewDestination(proof_id="proof:1")]


def test_connectionless_proof_request_matched_by_thread_id(
    make_harness: Callable[..., ProcessHarness],
    make_invitation: Callable[..., InvitationRecord],
    make_notification: Callable[..., Any],
) -> None:
    h = make_harness()
    h.store.put_invitation(make_invitation(goal_code="aries.vc.verify.once", thread_ids=("thr:1",)))
    h.feed.publish(make_notification("proof", "proof:1", thread_id="thr:1"))

    assert h.navigator.destinations == [ProofReviewDestination(proof_id="proof:1")]


def test_w3c_credential_preempts_connectionless_proof_routing(
    make_harness: Callable[..., ProcessHarness],
    make_invitation: Callable[..., InvitationRecord],
    make_notification: Callable[..., Any],
) -> None:
    h = make_harness()
    h.store.put_invitation(make_invitation(goal_code="aries.vc.verify.once"))
    h.scheduler.advance(2000)
    credential = make_notification("w3c", "w3c:1", credential={"type": ["VerifiableCredential"]})

    h.feed.publish(credential)

    assert h.navigator.destinations == [ExternalCredentialDetailDestination(credential=credential)]
    assert h.process.state.matched_notification == credential


def test_external_credential_filtered_by_openid_uri_hint(
    make_harness: Callable[..., ProcessHarness],
    make_notification: Callable[..., Any],
) -> None:
    h = make_harness(openid_uri="openid://mine")
    h.feed.publish(make_notification("sdjwt", "sd:other", offer_uri="openid://other"))
    assert h.navigator.destinations == []

    h.feed.publish(make_notification("sdjwt", "sd:mine", offer_uri="openid://mine"))

    assert len(h.navigator.destinations) == 1
    assert h.navigator.destinations[0].credential.id == "sd:mine"


def test_basic_message_stream_never_resolves(
    make_harness: Callable[..., ProcessHarness],
    make_invitation: Callable[..., InvitationRecord],
    make_connection: Callable[..., ConnectionRecord],
    make_notification: Callable[..., Any],
) -> None:
    h = make_harness()
    h.store.put_invitation(make_invitation(goal_code="aries.vc.issue"))
    h.store.put_connection(make_connection())
    for index in range(5):
        h.feed.publish(make_notification("basic", f"m{index}", connection_id="conn:1"))

    assert h.process.state.matched_notification is None
    assert h.process.state.in_progress is True
    assert h.navigator.destinations == []


def test_match_is_never_replaced(
    make_harness: Callable[..., ProcessHarness],
    make_invitation: Callable[..., InvitationRecord],
    make_connection: Callable[..., ConnectionRecord],
    make_notification: Callable[..., Any],
) -> None:
    h = make_harness()
    h.store.put_connection(make_connection())
    h.feed.publish(make_notification("credential", "cred:1", connection_id="conn:1"))
    # matched, but the router waits for the invitation
    assert h.process.state.matched_notification.id == "cred:1"
    assert h.process.state.phase is RouterPhase.DECIDING
    assert h.process.state.in_progress is True

    h.feed.publish(make_notification("credential", "cred:2", connection_id="conn:1"))
    h.feed.remove("cred:1")
    assert h.process.state.matched_notification.id == "cred:1"

    h.store.put_invitation(make_invitation(goal_code="aries.vc.issue"))

    assert h.navigator.destinations == [CredentialOfferDestination(credential_id="cred:1")]


def test_resolves_at_most_once_across_later_updates(
    make_harness: Callable[..., ProcessHarness],
    make_invitation: Callable[..., InvitationRecord],
    make_connection: Callable[..., ConnectionRecord],
    make_notification: Callable[..., Any],
) -> None:
    h = make_harness()
    h.store.put_invitation(make_invitation(goal_code="aries.vc.issue"))
    h.store.put_connection(make_connection())
    h.feed.publish(make_notification("credential", "cred:1", connection_id="conn:1"))

    h.feed.publish(make_notification("w3c", "w3c:1"))
    h.store.put_connection(make_connection(connection_id="conn:2"))
    h.store.put_invitation(make_invitation(goal_code="unknown.goal"))
    h.scheduler.advance(60000)
    assert h.process.dismiss() is False
    h.process.evaluate()

    assert h.navigator.destinations == [CredentialOfferDestination(credential_id="cred:1")]
    assert [t.event for t in h.process.history].count("resolved") == 1


def test_auto_redirect_resolves_home_exactly_once_at_expiry(
    make_harness: Callable[..., ProcessHarness],
    make_invitation: Callable[..., InvitationRecord],
) -> None:
    h = make_harness(config=RoutingConfig(delay_ms=10000, auto_redirect_on_delay=True))
    h.store.put_invitation(make_invitation(goal_code="aries.vc.issue"))

    h.scheduler.advance(9999)
    assert h.process.state.in_progress is True

    h.scheduler.advance(1)
    assert h.navigator.destinations == [HomeDestination()]
    assert h.process.state.in_progress is False
    assert h.process.state.delay_elapsed is True
    assert h.process.state.resolution_reason == "delay_auto_redirect"

    h.scheduler.advance(60000)
    assert h.navigator.destinations == [HomeDestination()]
    assert [t.event for t in h.process.history].count("delay_elapsed") == 1
    assert h.announcer.messages == []


def test_without_auto_redirect_delay_notice_is_emitted_once_and_waiting_continues(
    make_harness: Callable[..., ProcessHarness],
    make_invitation: Callable[..., InvitationRecord],
    make_connection: Callable[..., ConnectionRecord],
    make_notification: Callable[..., Any],
) -> None:
    h = make_harness(config=RoutingConfig(delay_ms=5000))
    h.store.put_invitation(make_invitation(goal_code="aries.vc.issue"))

    h.scheduler.advance(5000)
    assert h.process.state.in_progress is True
    assert h.process.state.delay_elapsed is True
    assert h.announcer.messages == [TAKING_TOO_LONG_MESSAGE_KEY]

    h.process.evaluate()
    h.store.put_connection(make_connection())
    h.feed.publish(make_notification("basic", "m1", connection_id="conn:1"))
    assert h.announcer.messages == [TAKING_TOO_LONG_MESSAGE_KEY]

    h.feed.publish(make_notification("credential", "cred:1", connection_id="conn:1"))
    assert h.navigator.destinations == [CredentialOfferDestination(credential_id="cred:1")]


def test_delay_expiry_after_match_is_a_noop(
    make_harness: Callable[..., ProcessHarness],
    make_invitation: Callable[..., InvitationRecord],
    make_connection: Callable[..., ConnectionRecord],
    make_notification: Callable[..., Any],
) -> None:
    h = make_harness(config=RoutingConfig(delay_ms=1000, auto_redirect_on_delay=True))
    h.store.put_connection(make_connection())
    h.feed.publish(make_notification("proof", "proof:1", connection_id="conn:1"))
    assert h.process.state.matched_notification is not None

    h.scheduler.advance(5000)
    assert h.process.state.delay_elapsed is True
    assert h.process.state.in_progress is True
    assert h.navigator.destinations == []
    assert h.announcer.messages == []

    h.store.put_invitation(make_invitation(goal_code="aries.vc.verify"))
    assert h.navigator.destinations == [ProofReviewDestination(proof_id="proof:1")]


def test_dismiss_resolves_home_and_cancels_watchdog(
    make_harness: Callable[..., ProcessHarness],
    make_invitation: Callable[..., InvitationRecord],
) -> None:
    h = make_harness()
    h.store.put_invitation(make_invitation(goal_code="aries.vc.verify"))
    h.scheduler.advance(3000)

    assert h.process.dismiss() is True
    assert h.navigator.destinations == [HomeDestination()]
    assert h.process.state.resolution_reason == "user_dismissed"
    assert h.process.watchdog.cancelled is True
    assert h.scheduler.pending == 0

    assert h.process.dismiss() is False
    h.scheduler.advance(60000)
    assert h.navigator.destinations == [HomeDestination()]
    assert h.announcer.messages == []


def test_dismiss_is_available_after_delay_notice(
    make_harness: Callable[..., ProcessHarness],
) -> None:
    h = make_harness(config=RoutingConfig(delay_ms=100))
    h.scheduler.advance(100)
    assert h.announcer.messages == [TAKING_TOO_LONG_MESSAGE_KEY]

    assert h.process.dismiss() is True
    assert h.navigator.destinations == [HomeDestination()]


def test_close_cancels_watchdog_and_ignores_later_changes(
    make_harness: Callable[..., ProcessHarness],
    make_invitation: Callable[..., InvitationRecord],
    make_connection: Callable[..., ConnectionRecord],
) -> None:
    h = make_harness(config=RoutingConfig(delay_ms=1000, auto_redirect_on_delay=True))
    assert h.store.subscriber_count == 1
    assert h.feed.subscriber_count == 1
    assert h.back_press.handler_count == 1

    h.process.close()
    h.store.put_invitation(make_invitation(goal_code=None))
    h.store.put_connection(make_connection())
    h.scheduler.advance(5000)
    h.process.evaluate()

    assert h.navigator.destinations == []
    assert h.process.dismiss() is False
    assert h.process.watchdog.cancelled is True
    assert h.store.subscriber_count == 0
    assert h.feed.subscriber_count == 0
    assert h.back_press.handler_count == 0


def test_start_after_close_raises(make_harness: Callable[..., ProcessHarness]) -> None:
    h = make_harness(start=False)
    h.process.close()

    with pytest.raises(ProcessLifecycleError):
        h.process.start()


def test_context_manager_starts_and_closes(
    make_harness: Callable[..., ProcessHarness],
) -> None:
    h = make_harness(start=False)

    with h.process as process:
        assert h.process.watchdog.pending is True
        assert process.state.in_progress is True

    assert h.process.closed is True
    assert h.scheduler.pending == 0


def test_back_press_is_consumed_while_mounted(make_harness: Callable[..., ProcessHarness]) -> None:
    h = make_harness()

    assert h.back_press.press() is True
    h.process.close()
    assert h.back_press.press() is False


def test_navigator_reentrant_store_change_does_not_navigate_twice(
    make_invitation: Callable[..., InvitationRecord],
    make_connection: Callable[..., ConnectionRecord],
    make_harness: Callable[..., ProcessHarness],
) -> None:
    class ReentrantNavigator(RecordingNavigator):
        store: Any = None

        def navigate(self, destination: Any) -> None:
            super().navigate(destination)
            self.store.put_connection(make_connection(connection_id="conn:late"))

    navigator = ReentrantNavigator()
    h = make_harness(navigator=navigator)
    navigator.store = h.store
    h.store.put_invitation(make_invitation(goal_code=None))

    h.store.put_connection(make_connection())

    assert navigator.destinations == [ChatDestination(connection_id="conn:1")]


def test_change_during_evaluation_is_processed_after_the_current_pass(
    make_harness: Callable[..., ProcessHarness],
    make_invitation: Callable[..., InvitationRecord],
    make_connection: Callable[..., ConnectionRecord],
) -> None:
    h = make_harness()
    h.store.put_invitation(make_invitation(goal_code=None))
    calls: list[str] = []
    original = h.store.get_connection_by_invitation

    def _get_connection(invitation_id: str) -> ConnectionRecord | None:
        calls.append(invitation_id)
        if len(calls) == 1:
            # arrives while the first pass is running
            h.store.put_connection(make_connection())
            return None
        return original(invitation_id)

    h.store.get_connection_by_invitation = _get_connection  # type: ignore[method-assign]
    h.process.evaluate()

    assert calls == [INVITATION_ID, INVITATION_ID]
    assert h.navigator.destinations == [ChatDestination(connection_id="conn:1")]


def test_missing_logger_does_not_affect_routing(
    make_invitation: Callable[..., InvitationRecord],
    make_connection: Callable[..., ConnectionRecord],
) -> None:
    from invitation_routing.adapters.notification_feed import InMemoryNotificationFeed
    from invitation_routing.adapters.record_store import InMemoryRecordStore
    from invitation_routing.adapters.scheduler import ManualScheduler
    from invitation_routing.engine import ConnectionProcess

    store = InMemoryRecordStore()
    navigator = RecordingNavigator()
    process = ConnectionProcess(
        INVITATION_ID,
        record_store=store,
        notification_feed=InMemoryNotificationFeed(),
        navigator=navigator,
        scheduler=ManualScheduler(),
        logger=None,
    )
    process.start()
    store.put_invitation(make_invitation(goal_code="x"))
    store.put_connection(make_connection())

    assert navigator.destinations == [ChatDestination(connection_id="conn:1")]

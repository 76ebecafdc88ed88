# invitation_routing/engine.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from invitation_routing._compat import Self
from invitation_routing.adapters.accessibility import TAKING_TOO_LONG_MESSAGE_KEY, Announcer, BackPressInterceptor
from invitation_routing.adapters.listeners import Subscription
from invitation_routing.adapters.navigator import Navigator
from invitation_routing.adapters.notification_feed import NotificationFeed
from invitation_routing.adapters.record_store import RecordStore
from invitation_routing.adapters.scheduler import Scheduler
from invitation_routing.config import RoutingConfig
from invitation_routing.contracts import Destination, HomeDestination, ProcessState, RouterPhase
from invitation_routing.errors import ProcessLifecycleError
from invitation_routing.matcher import match_notification
from invitation_routing.observability import safe_log
from invitation_routing.process_state import (
    initial_state,
    resolve,
    with_delay_elapsed,
    with_delay_notice,
    with_match,
)
from invitation_routing.router import DecisionKind, DecisionReason, decide_route
from invitation_routing.watchdog import DelayWatchdog

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessTransition:
    event: str
    phase: RouterPhase
    in_progress: bool
    reason: str | None = None


class ConnectionProcess:
    """
    Waits for the notification that belongs to an invitation and routes to it.

    All inputs are re-read on every evaluation: store and feed changes, watchdog
    expiry and ``dismiss`` each trigger one pass. Exactly one destination is ever
    handed to the navigator; after that, and after ``close``, every call is a
    no-op.
    """

    def __init__(
        self,
        invitation_id: str,
        *,
        record_store: RecordStore,
        notification_feed: NotificationFeed,
        navigator: Navigator,
        scheduler: Scheduler,
        config: Optional[RoutingConfig] = None,
        announcer: Optional[Announcer] = None,
        back_press: Optional[BackPressInterceptor] = None,
        openid_uri: str | None = None,
        logger: Optional[logging.Logger] = _LOGGER,
    ) -> None:
        self.invitation_id = invitation_id
        self.openid_uri = openid_uri
        self.config = config or RoutingConfig()
        self._record_store = record_store
        self._notification_feed = notification_feed
        self._navigator = navigator
        self._announcer = announcer
        self._back_press = back_press
        self._logger = logger

        self._state: ProcessState = initial_state()
        self._watchdog = DelayWatchdog(scheduler, self.config.delay_ms, self._on_delay_elapsed)
        self._subscriptions: list[Subscription] = []
        self._history: list[ProcessTransition] = []
        self._started = False
        self._closed = False
        self._evaluating = False
        self._rerun = False

    # --------------------------------------------------------------------------
    # Public surface
    # --------------------------------------------------------------------------

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def watchdog(self) -> DelayWatchdog:
        return self._watchdog

    @property
    def history(self) -> tuple[ProcessTransition, ...]:
        return tuple(self._history)

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> ProcessState:
        if self._closed:
            raise ProcessLifecycleError(f"connection process for {self.invitation_id} is closed")
        if self._started:
            return self._state
        self._started = True

        self._subscriptions.append(self._record_store.subscribe(self._on_change))
        self._subscriptions.append(self._notification_feed.subscribe(self._on_change))
        if self._back_press is not None:
            self._subscriptions.append(self._back_press.add_listener(self._on_back_press))

        self._watchdog.start()
        return self.evaluate()

    def evaluate(self) -> ProcessState:
        """Run evaluation passes until no change arrived mid-pass."""
        if self._closed:
            return self._state
        if self._evaluating:
            self._rerun = True
            return self._state

        self._evaluating = True
        try:
            self._rerun = True
            while self._rerun and not self._closed:
                self._rerun = False
                self._evaluate_once()
        finally:
            self._evaluating = False
        return self._state

    def dismiss(self) -> bool:
        """User escape hatch: go Home. Returns False when already resolved or closed."""
        if self._closed or not self._state.in_progress:
            return False
        return self._resolve(HomeDestination(), DecisionReason.USER_DISMISSED)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._watchdog.cancel()
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.close()
        safe_log(self._logger, logging.DEBUG, "Connection: process closed", invitation_id=self.invitation_id)

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --------------------------------------------------------------------------
    # Evaluation
    # --------------------------------------------------------------------------

    def _evaluate_once(self) -> None:
        if not self._state.in_progress:
            return

        invitation = self._record_store.get_invitation(self.invitation_id)
        connection = self._record_store.get_connection_by_invitation(self.invitation_id)

        if self._state.matched_notification is None:
            matched = match_notification(
                self._notification_feed.current(openid_uri=self.openid_uri),
                connection=connection,
                invitation=invitation,
                logger=self._logger,
            )
            if matched is not None:
                self._commit(with_match(self._state, matched), "matched", reason=matched.id)

        decision = decide_route(
            invitation=invitation,
            connection=connection,
            matched=self._state.matched_notification,
        )
        if decision.kind is DecisionKind.RESOLVE:
            self._resolve(decision.destination, decision.reason)
            return
        if decision.kind is DecisionKind.STALL:
            safe_log(
                self._logger,
                logging.ERROR,
                "Connection: No OOB record where one is expected",
                invitation_id=self.invitation_id,
                reason=decision.reason.value,
            )

        self._apply_delay_policy()

    def _apply_delay_policy(self) -> None:
        state = self._state
        if not state.in_progress or not state.delay_elapsed or state.matched_notification is not None:
            return

        if self.config.auto_redirect_on_delay:
            self._resolve(HomeDestination(), DecisionReason.DELAY_AUTO_REDIRECT)
            return

        noticed = with_delay_notice(state)
        if noticed is state:
            return
        self._commit(noticed, "delay_notice")
        safe_log(self._logger, logging.INFO, "Connection: taking too long", invitation_id=self.invitation_id)
        if self._announcer is not None:
            self._announcer.announce(TAKING_TOO_LONG_MESSAGE_KEY)

    def _resolve(self, destination: Destination, reason: DecisionReason) -> bool:
        resolved = resolve(self._state, destination, reason=reason.value)
        if resolved is self._state:
            return False
        self._commit(resolved, "resolved", reason=reason.value)
        self._watchdog.cancel()

        safe_log(
            self._logger,
            logging.INFO,
            "Connection: %s, navigate to %s",
            reason.value,
            destination.screen,
            invitation_id=self.invitation_id,
            destination=destination.screen,
            reason=reason.value,
        )
        self._navigator.navigate(destination)
        return True

    def _commit(self, state: ProcessState, event: str, *, reason: str | None = None) -> None:
        if state is self._state:
            return
        self._state = state
        self._history.append(
            ProcessTransition(event=event, phase=state.phase, in_progress=state.in_progress, reason=reason)
        )

    # --------------------------------------------------------------------------
    # Callbacks
    # --------------------------------------------------------------------------

    def _on_change(self) -> None:
        self.evaluate()

    def _on_delay_elapsed(self) -> None:
        if self._closed:
            return
        self._commit(with_delay_elapsed(self._state), "delay_elapsed")
        self.evaluate()

    def _on_back_press(self) -> bool:
        # the platform default would pop the waiting screen
        return not self._closed

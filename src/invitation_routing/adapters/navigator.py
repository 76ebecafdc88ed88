from __future__ import annotations

from typing import Protocol

from invitation_routing.contracts import Destination, NavigationMode


class Navigator(Protocol):
    """Presentation-side navigation. Each process calls it at most once."""

    def navigate(self, destination: Destination) -> None:
        ...


class RecordingNavigator:
    """Navigator that keeps every destination it was asked to show, with its stack mode."""

    def __init__(self) -> None:
        self.destinations: list[Destination] = []
        self.modes: list[NavigationMode] = []

    def navigate(self, destination: Destination) -> None:
        self.destinations.append(destination)
        self.modes.append(destination.navigation_mode)

    @property
    def last(self) -> Destination | None:
        return self.destinations[-1] if self.destinations else None

"""Mutable engine state shared by the facade, coordinator and playback."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .playback.session import PlaybackSession


@dataclass(frozen=True)
class Ticket:
    """Freshness token for one UI slot.

    A ticket is fresh until a newer one is claimed for the same slot, i.e.
    until the slot has been asked to show something else.
    """

    state: "EngineState"
    slot: Any
    number: int

    def is_fresh(self) -> bool:
        return self.state.slots.get(id(self.slot)) == self.number


@dataclass
class EngineState:
    """Everything that would otherwise be module-level globals.

    Attributes:
        provider: Name of the selected speech provider
        voice: Selected voice
        generation: Bumped on every stop, cancel and new play; async
            continuations compare their captured value before acting
        session: The one non-terminal playback session, if any
        slots: Latest ticket number per UI slot (keyed by object id)
    """

    provider: str = "google"
    voice: str = "Aoede"
    generation: int = 0
    session: "PlaybackSession | None" = None
    slots: dict[int, int] = field(default_factory=dict)
    _ticket_counter: int = 0

    def next_generation(self) -> int:
        self.generation += 1
        return self.generation

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def claim(self, slot: Any) -> Ticket:
        """Record that ``slot`` now wants a new asset and return its ticket."""
        self._ticket_counter += 1
        self.slots[id(slot)] = self._ticket_counter
        return Ticket(self, slot, self._ticket_counter)

    def release(self, slot: Any) -> None:
        """Forget a slot, making any outstanding ticket for it stale."""
        self.slots.pop(id(slot), None)

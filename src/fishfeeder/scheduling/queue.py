"""Pure reservation queue operations.

:class:`ReservationQueue` is an immutable value: every mutation returns a
new queue, and persistence is left to the caller.  Order is insertion
order, which :class:`~fishfeeder.models.feeder.FeederState` rebuilds from
``createdAt`` when loading from the store.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator
from typing import Any

from fishfeeder.models.feeder import Reservation
from fishfeeder.models.requests import RequesterIdentity
from fishfeeder.scheduling.cooldown import first_slot


def _by_device(reservation: Reservation, identity: RequesterIdentity) -> bool:
    return identity.device_id is not None and reservation.device_id == identity.device_id


def _by_contact(reservation: Reservation, identity: RequesterIdentity) -> bool:
    return identity.user_email is not None and reservation.user_email == identity.user_email


@dataclasses.dataclass(frozen=True)
class ReservationQueue:
    entries: tuple[Reservation, ...] = ()

    @classmethod
    def of(cls, reservations: list[Reservation]) -> ReservationQueue:
        return cls(tuple(reservations))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Reservation]:
        return iter(self.entries)

    def find(self, identity: RequesterIdentity) -> tuple[int, Reservation] | None:
        """Locate *identity*'s reservation; device id is matched before contact.

        Returns the 1-based queue position and the entry.
        """
        for match in (_by_device, _by_contact):
            for index, reservation in enumerate(self.entries):
                if match(reservation, identity):
                    return index + 1, reservation
        return None

    def next_scheduled_time(self, last_feed: int | None, cooldown_ms: int, now: int) -> int:
        """Slot for a new entry: one cooldown after the tail, or the first free slot."""
        if self.entries:
            return self.entries[-1].scheduled_time + cooldown_ms
        return first_slot(last_feed, cooldown_ms, now)

    def append(self, reservation: Reservation) -> ReservationQueue:
        return ReservationQueue(self.entries + (reservation,))

    def ready(self, now: int) -> list[Reservation]:
        return [r for r in self.entries if r.scheduled_time <= now]

    def take_ready(self, now: int) -> tuple[Reservation | None, ReservationQueue]:
        """Pop the oldest eligible request, regardless of its position."""
        eligible = self.ready(now)
        if not eligible:
            return None, self
        chosen = min(eligible, key=lambda r: r.created_at)
        return chosen, self.without(chosen)

    def without(self, reservation: Reservation) -> ReservationQueue:
        """Drop the entry for the same request; its schedule may have moved."""
        for index, entry in enumerate(self.entries):
            if entry.key == reservation.key:
                return ReservationQueue(self.entries[:index] + self.entries[index + 1 :])
        return self

    def rescheduled(self, anchor: int | None, cooldown_ms: int, now: int) -> ReservationQueue:
        """Lay entries out one cooldown apart starting after *anchor*.

        No entry is scheduled before *now*.  Without an anchor the first
        entry is due at *now*.
        """
        current = first_slot(anchor, cooldown_ms, now)
        updated: list[Reservation] = []
        for reservation in self.entries:
            scheduled = max(now, current)
            if scheduled != reservation.scheduled_time:
                reservation = reservation.model_copy(update={"scheduled_time": scheduled})
            updated.append(reservation)
            current = scheduled + cooldown_ms
        return ReservationQueue(tuple(updated))

    def to_store(self) -> list[dict[str, Any]]:
        return [r.to_store() for r in self.entries]

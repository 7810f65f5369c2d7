"""Attachment slot bookkeeping for a single storage controller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

# A controller accepts this many disks, including the primary disk.
MAX_DISK_NUMBER = 30

PRIMARY_PORT = 0
PRIMARY_DEVICE = 0


@dataclass(frozen=True, order=True)
class Slot:
    port: int
    device: int = 0

    def __str__(self) -> str:
        return f'{self.port}-{self.device}'


PRIMARY_SLOT = Slot(PRIMARY_PORT, PRIMARY_DEVICE)


def used_ports(occupied: Iterable[Slot]) -> set[int]:
    return {slot.port for slot in occupied}


def next_free_slot(
    occupied: Iterable[Slot], *, limit: int = MAX_DISK_NUMBER
) -> Slot | None:
    """Lowest port in ``0..limit-1`` with nothing attached, device 0.

    Returns None when every port is taken; callers must not attach in that
    case.
    """
    taken = used_ports(occupied)
    for port in range(limit):
        if port not in taken:
            return Slot(port, 0)
    return None


def find_slot(attachments: Mapping[Slot, str], uuid: str) -> Slot | None:
    """Slot the medium with ``uuid`` is attached to, if any."""
    for slot, bound_uuid in sorted(attachments.items()):
        if bound_uuid == uuid:
            return slot
    return None

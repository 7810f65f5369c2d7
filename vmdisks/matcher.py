"""Find the hypervisor disk that corresponds to a desired disk definition."""

from __future__ import annotations

from typing import Sequence

from .config import DiskConfig
from .driver import GuestInfo, ObservedDisk
from .errors import AmbiguousDiskError
from .slots import PRIMARY_SLOT


def primary_uuid(guest: GuestInfo, controller: str) -> str | None:
    return guest.attachment_map(controller).get(PRIMARY_SLOT)


def find_existing(
    desired: DiskConfig,
    observed: Sequence[ObservedDisk],
    guest: GuestInfo,
    *,
    controller: str,
) -> ObservedDisk | None:
    """Return the observed disk managed by ``desired``, or None.

    The primary disk is whatever is attached at port 0 device 0 of the
    controller; ``list hdds`` does not enumerate disks in port order. All other
    disks are matched by name, and more than one candidate is an error.
    """
    if desired.primary:
        uuid = primary_uuid(guest, controller)
        if uuid is None:
            return None
        for disk in observed:
            if disk.uuid == uuid:
                return disk
        return None

    matches = [disk for disk in observed if disk.name == desired.name]
    if len(matches) > 1:
        raise AmbiguousDiskError(desired.name, [d.uuid for d in matches])
    return matches[0] if matches else None

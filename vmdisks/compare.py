"""Compare requested and reported disk capacity."""

from __future__ import annotations

import enum

from loguru import logger

from .config import DiskConfig
from .driver import ObservedDisk
from .numeric import bytes_to_megabytes, capacity_to_megabytes

log = logger


class SizeChange(enum.Enum):
    NO_CHANGE = 'no_change'
    GROW = 'grow'
    REJECT_SHRINK = 'reject_shrink'


def needs_resize(desired: DiskConfig, observed: ObservedDisk) -> SizeChange:
    requested_mb = bytes_to_megabytes(desired.size or 0)
    current_mb = capacity_to_megabytes(observed.capacity)
    log.debug(
        'Disk {} capacity: current={} MB requested={} MB',
        desired.name,
        current_mb,
        requested_mb,
    )
    if current_mb > requested_mb:
        return SizeChange.REJECT_SHRINK
    if current_mb < requested_mb:
        return SizeChange.GROW
    return SizeChange.NO_CHANGE

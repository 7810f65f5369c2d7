"""Grow a disk in place, or by converting through a resizable format.

VirtualBox cannot resize VMDK media. Those are cloned to VDI, resized,
swapped out of their slot and cloned back to VMDK at the original path. The
sequence is tracked as a small state machine so a failure reports exactly how
far it got; nothing is rolled back.
"""

from __future__ import annotations

import enum
from dataclasses import replace
from pathlib import Path
from typing import Callable

from loguru import logger

from .config import DiskConfig
from .driver import GuestInfo, ObservedDisk, VBoxManageDriver
from .errors import DriverError, ResizeStepError
from .numeric import MEGABYTE
from .slots import Slot, find_slot
from .util import CmdError

log = logger

NON_RESIZABLE_FORMATS = {'VMDK'}
INTERMEDIATE_FORMAT = 'VDI'


class ResizeState(enum.Enum):
    STARTED = 0
    CLONED = 1
    RESIZED = 2
    DETACHED = 3
    CLONED_BACK = 4
    ATTACHED = 5
    CLOSED = 6


def is_resizable(storage_format: str) -> bool:
    return storage_format.strip().upper() not in NON_RESIZABLE_FORMATS


def sibling_path(location: str, ext: str) -> str:
    p = Path(location)
    return str(p.with_name(p.stem + '.' + ext.lower()))


class ConversionResize:
    """Clone → resize → detach/close → clone back → attach → close."""

    def __init__(
        self,
        driver: VBoxManageDriver,
        desired: DiskConfig,
        observed: ObservedDisk,
        slot: Slot,
    ):
        self.driver = driver
        self.desired = desired
        self.observed = observed
        self.slot = slot
        self.original_format = observed.storage_format.strip().upper()
        self.intermediate = sibling_path(observed.location, INTERMEDIATE_FORMAT)
        self.state = ResizeState.STARTED
        self.history: list[ResizeState] = [self.state]

    def _advance(
        self, step: str, target: ResizeState, func: Callable[[], None]
    ) -> None:
        try:
            func()
        except (CmdError, DriverError) as ex:
            log.error(
                'Resize of disk {} failed at step {} (state={})',
                self.desired.name,
                step,
                self.state.name,
            )
            raise ResizeStepError(self.desired.name, self.state, step, ex) from ex
        self.state = target
        self.history.append(target)
        log.debug('Resize of disk {} reached {}', self.desired.name, target.name)

    def _clone(self) -> None:
        log.warning(
            "Converting disk '{}' from '{}' to '{}' format",
            self.observed.location,
            self.original_format.lower(),
            INTERMEDIATE_FORMAT.lower(),
        )
        self.driver.clone_disk(
            self.observed.location, self.intermediate, INTERMEDIATE_FORMAT
        )

    def _resize(self) -> None:
        self.driver.resize_disk(self.intermediate, int(self.desired.size or 0))

    def _detach(self) -> None:
        self.driver.remove_disk(self.slot.port, self.slot.device)
        self.driver.close_medium(self.observed.uuid)

    def _clone_back(self) -> None:
        log.warning(
            "Converting disk '{}' from '{}' to '{}' format",
            self.intermediate,
            INTERMEDIATE_FORMAT.lower(),
            self.original_format.lower(),
        )
        self.driver.clone_disk(
            self.intermediate, self.observed.location, self.original_format
        )

    def _attach(self) -> None:
        self.driver.attach_disk(
            self.slot.port, self.slot.device, self.observed.location, 'hdd'
        )

    def _close(self) -> None:
        self.driver.close_medium(self.intermediate)

    def run(self) -> ObservedDisk:
        self._advance('clone', ResizeState.CLONED, self._clone)
        self._advance('resize', ResizeState.RESIZED, self._resize)
        self._advance('detach', ResizeState.DETACHED, self._detach)
        self._advance('clone_back', ResizeState.CLONED_BACK, self._clone_back)
        self._advance('attach', ResizeState.ATTACHED, self._attach)
        self._advance('close', ResizeState.CLOSED, self._close)
        refreshed = [
            disk
            for disk in self.driver.list_disks()
            if disk.location == self.observed.location
        ]
        if not refreshed:
            raise ResizeStepError(
                self.desired.name,
                self.state,
                'refresh',
                DriverError(
                    f'No disk reported at {self.observed.location} after conversion.'
                ),
            )
        return refreshed[0]


def resize(
    driver: VBoxManageDriver,
    desired: DiskConfig,
    observed: ObservedDisk,
    guest: GuestInfo,
    *,
    controller: str,
) -> ObservedDisk:
    """Grow ``observed`` to ``desired.size`` and return its new record."""
    size = int(desired.size or 0)
    if is_resizable(observed.storage_format):
        log.info(
            'Resizing disk {} at {} to {} bytes',
            desired.name,
            observed.location,
            size,
        )
        driver.resize_disk(observed.location, size)
        return replace(observed, capacity=f'{size // MEGABYTE} MBytes')

    log.warning(
        'Disk type {} cannot be resized in place. Converting disk {} to {} '
        'to resize it, then converting it back to {}',
        observed.storage_format,
        desired.name,
        INTERMEDIATE_FORMAT,
        observed.storage_format,
    )
    slot = find_slot(guest.attachment_map(controller), observed.uuid)
    if slot is None:
        raise ResizeStepError(
            desired.name,
            ResizeState.STARTED,
            'locate_slot',
            DriverError(
                f'Disk {observed.uuid} is not attached to {controller!r}; '
                'cannot swap it after conversion.'
            ),
        )
    return ConversionResize(driver, desired, observed, slot).run()

"""Converge a guest's disks to the desired definitions.

``reconcile_all`` is the entry point used by provisioning. Each ``disk`` entry
is first turned into a ``PlanEntry`` by ``decide`` (pure, no hypervisor
calls) and then applied by ``reconcile_one``. ``plan_all`` runs only the
deciding half so callers can preview the changes.
"""

from __future__ import annotations

from typing import Sequence

from loguru import logger

from .compare import SizeChange, needs_resize
from .config import DiskConfig, validate_disks
from .driver import GuestInfo, ObservedDisk, VBoxManageDriver
from .errors import AmbiguousDiskError, DiskLimitExceededError
from .features import DISKS_FEATURE, feature_enabled
from .matcher import find_existing
from .resize import resize
from .results import (
    ConfiguredDisks,
    DiskMetadata,
    DiskOutcome,
    OutcomeKind,
    PlanEntry,
    PlannedAction,
)
from .slots import MAX_DISK_NUMBER, Slot, find_slot, next_free_slot

log = logger

NO_FREE_SLOT_MSG = (
    'There are no more available ports to attach disks to for the {controller}. '
    'Clear up some space on the controller to attach new disks.'
)


def decide(
    desired: DiskConfig,
    existing: ObservedDisk | None,
    attachments: dict[Slot, str],
    occupied: set[Slot],
    *,
    controller: str,
) -> PlanEntry:
    """Choose the action for one ``disk`` entry.

    ``occupied`` is updated with any slot the plan claims, so consecutive calls
    for the same guest never hand out the same port twice.
    """
    if existing is None:
        slot = next_free_slot(occupied)
        if slot is None:
            return PlanEntry(
                desired.name,
                desired.type,
                PlannedAction.SKIP,
                detail=NO_FREE_SLOT_MSG.format(controller=controller),
            )
        occupied.add(slot)
        return PlanEntry(
            desired.name,
            desired.type,
            PlannedAction.CREATE,
            slot=slot,
            detail=f'create {desired.name}.{desired.disk_ext} ({desired.size} bytes)',
        )

    change = needs_resize(desired, existing)
    if change is SizeChange.GROW:
        return PlanEntry(
            desired.name,
            desired.type,
            PlannedAction.RESIZE,
            uuid=existing.uuid,
            slot=find_slot(attachments, existing.uuid),
            detail=f'{existing.capacity} -> {desired.size} bytes ({existing.storage_format})',
        )

    detail = ''
    if change is SizeChange.REJECT_SHRINK:
        detail = (
            f"VirtualBox does not support shrinking disk size. Cannot shrink "
            f"'{desired.name}' from {existing.capacity}."
        )
    attached = find_slot(attachments, existing.uuid)
    if attached is None:
        slot = next_free_slot(occupied)
        if slot is None:
            return PlanEntry(
                desired.name,
                desired.type,
                PlannedAction.SKIP,
                uuid=existing.uuid,
                detail=NO_FREE_SLOT_MSG.format(controller=controller),
            )
        occupied.add(slot)
        return PlanEntry(
            desired.name,
            desired.type,
            PlannedAction.REATTACH,
            uuid=existing.uuid,
            slot=slot,
            detail=detail,
        )
    action = (
        PlannedAction.REJECT_SHRINK
        if change is SizeChange.REJECT_SHRINK
        else PlannedAction.NONE
    )
    return PlanEntry(
        desired.name,
        desired.type,
        action,
        uuid=existing.uuid,
        slot=attached,
        detail=detail,
    )


def _create(
    driver: VBoxManageDriver,
    desired: DiskConfig,
    guest: GuestInfo,
    slot: Slot,
) -> DiskOutcome:
    disk_file = str(guest.guest_folder / f'{desired.name}.{desired.disk_ext}')
    log.info(
        "Disk '{}' not found in guest. Creating {} ({} bytes) and attaching it at port {}",
        desired.name,
        disk_file,
        desired.size,
        slot.port,
    )
    uuid = driver.create_disk(disk_file, int(desired.size or 0), desired.disk_format)
    driver.attach_disk(slot.port, slot.device, disk_file)
    return DiskOutcome(
        desired.name,
        desired.type,
        OutcomeKind.CREATED,
        metadata=DiskMetadata(uuid, desired.name),
        slot=slot,
    )


def reconcile_one(
    driver: VBoxManageDriver,
    desired: DiskConfig,
    observed: Sequence[ObservedDisk],
) -> DiskOutcome:
    """Apply the decision for one ``disk`` entry and report what happened."""
    controller = driver.controller
    guest = driver.show_guest_info()
    attachments = guest.attachment_map(controller)
    existing = find_existing(desired, observed, guest, controller=controller)
    entry = decide(
        desired, existing, attachments, set(attachments), controller=controller
    )
    log.debug('Disk {}: {} {}', desired.name, entry.action.name, entry.detail)

    if entry.action is PlannedAction.CREATE:
        return _create(driver, desired, guest, entry.slot)

    if entry.action is PlannedAction.SKIP:
        log.warning(entry.detail)
        metadata = DiskMetadata(entry.uuid, desired.name) if entry.uuid else None
        return DiskOutcome(
            desired.name,
            desired.type,
            OutcomeKind.SKIPPED,
            metadata=metadata,
            reason=entry.detail,
        )

    if entry.action is PlannedAction.RESIZE:
        log.info("Disk '{}' needs to be resized. Resizing disk...", desired.name)
        resized = resize(
            driver, desired, existing, guest, controller=controller
        )
        return DiskOutcome(
            desired.name,
            desired.type,
            OutcomeKind.RESIZED,
            metadata=DiskMetadata(resized.uuid, desired.name),
            slot=entry.slot,
        )

    metadata = DiskMetadata(existing.uuid, desired.name)
    if entry.detail:
        log.warning(entry.detail)

    if entry.action is PlannedAction.REATTACH:
        log.warning(
            "Disk '{}' is not connected to the guest, attaching it at port {}",
            desired.name,
            entry.slot.port,
        )
        driver.attach_disk(entry.slot.port, entry.slot.device, existing.location)
        return DiskOutcome(
            desired.name,
            desired.type,
            OutcomeKind.REATTACHED,
            metadata=metadata,
            reason=entry.detail,
            slot=entry.slot,
        )

    if entry.action is PlannedAction.REJECT_SHRINK:
        return DiskOutcome(
            desired.name,
            desired.type,
            OutcomeKind.REJECTED,
            metadata=metadata,
            reason=entry.detail,
            slot=entry.slot,
        )

    log.info("No further configuration required for disk '{}'", desired.name)
    return DiskOutcome(
        desired.name,
        desired.type,
        OutcomeKind.NO_CHANGE,
        metadata=metadata,
        slot=entry.slot,
    )


def _check_limit(desired_list: Sequence[DiskConfig]) -> None:
    count = sum(1 for d in desired_list if d.type == 'disk')
    if count > MAX_DISK_NUMBER:
        raise DiskLimitExceededError(count, MAX_DISK_NUMBER)


def _unsupported(desired: DiskConfig) -> DiskOutcome:
    label = {'floppy': 'Floppy disk', 'dvd': 'DVD disk'}.get(
        desired.type, desired.type
    )
    reason = f'{label} configuration not yet supported. Skipping disk {desired.name}...'
    log.warning(reason)
    return DiskOutcome(
        desired.name, desired.type, OutcomeKind.SKIPPED, reason=reason
    )


def reconcile_all(
    driver: VBoxManageDriver,
    desired_list: Sequence[DiskConfig],
    *,
    enabled: bool | None = None,
) -> ConfiguredDisks:
    """Reconcile every desired disk and collect the resulting metadata.

    Does nothing when ``desired_list`` is empty or the ``disks`` feature is
    off. Invalid definitions (two primaries, repeated names) and too many
    ``disk`` entries raise before the hypervisor is touched.
    Hypervisor failures propagate; a failed resize is not rolled back.
    """
    result = ConfiguredDisks()
    if not desired_list:
        return result
    if enabled is None:
        enabled = feature_enabled(DISKS_FEATURE)
    if not enabled:
        log.debug('Disk management is disabled; skipping {} disks', len(desired_list))
        return result
    validate_disks(list(desired_list))
    _check_limit(desired_list)

    log.info('Configuring storage mediums...')
    observed = driver.list_disks()
    for desired in desired_list:
        if desired.type != 'disk':
            result.add(_unsupported(desired))
            continue
        try:
            outcome = reconcile_one(driver, desired, observed)
        except AmbiguousDiskError as ex:
            log.warning(str(ex))
            outcome = DiskOutcome(
                desired.name, desired.type, OutcomeKind.REJECTED, reason=str(ex)
            )
        result.add(outcome)
    return result


def plan_all(
    driver: VBoxManageDriver, desired_list: Sequence[DiskConfig]
) -> list[PlanEntry]:
    """Decide every entry using read-only hypervisor queries."""
    if not desired_list:
        return []
    validate_disks(list(desired_list))
    _check_limit(desired_list)
    controller = driver.controller
    observed = driver.list_disks()
    guest = driver.show_guest_info()
    attachments = guest.attachment_map(controller)
    occupied = set(attachments)
    plan: list[PlanEntry] = []
    for desired in desired_list:
        if desired.type != 'disk':
            plan.append(
                PlanEntry(
                    desired.name,
                    desired.type,
                    PlannedAction.SKIP,
                    detail=f'{desired.type} configuration not yet supported',
                )
            )
            continue
        try:
            existing = find_existing(
                desired, observed, guest, controller=controller
            )
        except AmbiguousDiskError as ex:
            plan.append(
                PlanEntry(
                    desired.name, desired.type, PlannedAction.SKIP, detail=str(ex)
                )
            )
            continue
        plan.append(
            decide(desired, existing, attachments, occupied, controller=controller)
        )
    return plan

"""Rendering of reconciliation outcomes, plans, and disk inventory for the CLI."""

from __future__ import annotations

from typing import Sequence

from .driver import GuestInfo, ObservedDisk
from .results import (
    ConfiguredDisks,
    DiskOutcome,
    OutcomeKind,
    PlanEntry,
    PlannedAction,
)


def status_line(ok: bool | None, label: str, detail: str = '') -> str:
    icon = '✅' if ok is True else ('➖' if ok is None else '❌')
    suffix = f' - {detail}' if detail else ''
    return f'{icon} {label}{suffix}'


def _outcome_ok(outcome: DiskOutcome) -> bool | None:
    if outcome.kind is OutcomeKind.REJECTED:
        return False
    if outcome.is_warning:
        return None
    return True


def render_outcome(outcome: DiskOutcome) -> str:
    parts = [outcome.kind.value]
    if outcome.metadata is not None:
        parts.append(f'uuid={outcome.metadata.uuid}')
    if outcome.slot is not None:
        parts.append(f'slot={outcome.slot}')
    if outcome.reason:
        parts.append(outcome.reason)
    label = f'{outcome.disk_type} {outcome.name}'
    return status_line(_outcome_ok(outcome), label, ' | '.join(parts))


def render_configured(result: ConfiguredDisks, *, vm: str = '') -> str:
    title = f'Storage for {vm}' if vm else 'Storage'
    lines = [title]
    if not result.outcomes:
        lines.append('  (nothing to configure)')
    for outcome in result.outcomes:
        lines.append('  ' + render_outcome(outcome))
    return '\n'.join(lines)


def render_plan(plan: Sequence[PlanEntry], *, vm: str = '') -> str:
    title = f'Planned storage changes for {vm}' if vm else 'Planned storage changes'
    lines = [title]
    if not plan:
        lines.append('  (nothing to configure)')
    for entry in plan:
        ok: bool | None = True
        if entry.action is PlannedAction.REJECT_SHRINK:
            ok = False
        elif entry.action in {PlannedAction.SKIP, PlannedAction.NONE}:
            ok = None
        parts = [entry.action.value]
        if entry.slot is not None:
            parts.append(f'slot={entry.slot}')
        if entry.detail:
            parts.append(entry.detail)
        lines.append(
            '  ' + status_line(ok, f'{entry.disk_type} {entry.name}', ' | '.join(parts))
        )
    return '\n'.join(lines)


def render_inventory(
    disks: Sequence[ObservedDisk], guest: GuestInfo, *, controller: str
) -> str:
    attachments = guest.attachment_map(controller)
    by_uuid = {uuid: slot for slot, uuid in attachments.items()}
    lines = ['Hypervisor disks']
    if not disks:
        lines.append('  (none)')
    for disk in sorted(disks, key=lambda d: d.location):
        slot = by_uuid.get(disk.uuid)
        where = f'slot={slot}' if slot is not None else 'not attached to this guest'
        lines.append(
            f'  - {disk.name} | {disk.storage_format} | {disk.capacity} '
            f'| {where} | {disk.location}'
        )
    lines.append('')
    lines.append(f'Slots on {controller}')
    if not attachments:
        lines.append('  (none)')
    for slot, uuid in sorted(attachments.items()):
        lines.append(f'  - {slot}: {uuid}')
    return '\n'.join(lines)

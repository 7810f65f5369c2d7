from __future__ import annotations

from fake_vbox import FakeDriver, mb_disk
from vmdisks.report import (
    render_configured,
    render_inventory,
    render_outcome,
    render_plan,
    status_line,
)
from vmdisks.results import (
    ConfiguredDisks,
    DiskMetadata,
    DiskOutcome,
    OutcomeKind,
    PlanEntry,
    PlannedAction,
)
from vmdisks.slots import Slot


def test_status_line_icons() -> None:
    assert status_line(True, 'disk a') == '✅ disk a'
    assert status_line(False, 'disk a', 'bad') == '❌ disk a - bad'
    assert status_line(None, 'disk a') == '➖ disk a'


def test_render_outcome_includes_uuid_and_slot() -> None:
    outcome = DiskOutcome(
        name='data',
        disk_type='disk',
        kind=OutcomeKind.CREATED,
        metadata=DiskMetadata(uuid='u1', name='data'),
        slot=Slot(2),
    )
    assert render_outcome(outcome) == (
        '✅ disk data - created | uuid=u1 | slot=2-0'
    )


def test_render_configured_empty() -> None:
    text = render_configured(ConfiguredDisks(), vm='box')
    assert text.splitlines() == ['Storage for box', '  (nothing to configure)']


def test_render_plan_marks_rejections() -> None:
    plan = [
        PlanEntry('a', 'disk', PlannedAction.REJECT_SHRINK, detail='too small'),
        PlanEntry('b', 'disk', PlannedAction.NONE),
    ]
    lines = render_plan(plan).splitlines()
    assert lines[0] == 'Planned storage changes'
    assert lines[1] == '  ❌ disk a - reject_shrink | too small'
    assert lines[2] == '  ➖ disk b - none'


def test_render_inventory_marks_detached() -> None:
    driver = FakeDriver(
        disks=[mb_disk('u1', 'data', 10), mb_disk('u2', 'spare', 10)],
        attachments={Slot(1): 'u1'},
    )
    text = render_inventory(
        driver.list_disks(),
        driver.show_guest_info(),
        controller=driver.controller,
    )
    assert 'spare | VDI | 10 MBytes | not attached to this guest' in text
    assert '  - 1-0: u1' in text


def test_render_outcome_flags_warnings() -> None:
    reattached = DiskOutcome(
        name='data',
        disk_type='disk',
        kind=OutcomeKind.REATTACHED,
        metadata=DiskMetadata(uuid='u1', name='data'),
        reason='cannot shrink',
        slot=Slot(1),
    )
    skipped = DiskOutcome('iso', 'dvd', OutcomeKind.SKIPPED, reason='later')
    rejected = DiskOutcome('big', 'disk', OutcomeKind.REJECTED, reason='shrink')
    assert reattached.is_warning and skipped.is_warning and rejected.is_warning
    assert render_outcome(reattached).startswith('➖ disk data - reattached')
    assert render_outcome(skipped) == '➖ dvd iso - skipped | later'
    assert render_outcome(rejected).startswith('❌ disk big')

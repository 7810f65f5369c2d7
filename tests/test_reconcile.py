"""Tests for per-disk reconciliation and the batch entry point."""

from __future__ import annotations

import pytest

from fake_vbox import FakeDriver, mb_disk, want
from vmdisks.config import DiskConfig
from vmdisks.errors import DiskConfigError, DiskLimitExceededError
from vmdisks.numeric import GIGABYTE
from vmdisks.reconcile import plan_all, reconcile_all, reconcile_one
from vmdisks.results import OutcomeKind, PlannedAction
from vmdisks.slots import Slot


def test_empty_list_is_noop() -> None:
    driver = FakeDriver()
    result = reconcile_all(driver, [], enabled=True)
    assert result.as_dict() == {'disk': [], 'floppy': [], 'dvd': []}
    assert driver.calls == []


def test_disabled_feature_is_noop(monkeypatch) -> None:
    monkeypatch.delenv('VMDISKS_EXPERIMENTAL', raising=False)
    driver = FakeDriver()
    result = reconcile_all(driver, [want('data')])
    assert result.as_dict() == {'disk': [], 'floppy': [], 'dvd': []}
    assert driver.calls == []


def test_feature_gate_from_environment(monkeypatch) -> None:
    monkeypatch.setenv('VMDISKS_EXPERIMENTAL', 'other,disks')
    driver = FakeDriver()
    result = reconcile_all(driver, [want('data')])
    assert [m.name for m in result.disk] == ['data']


def test_too_many_disks_fails_before_any_call() -> None:
    driver = FakeDriver()
    disks = [want(f'd{i}') for i in range(31)]
    with pytest.raises(DiskLimitExceededError) as exc:
        reconcile_all(driver, disks, enabled=True)
    assert exc.value.count == 31
    assert driver.calls == []


def test_thirty_disks_plus_dvd_is_within_limit() -> None:
    driver = FakeDriver()
    disks = [want(f'd{i}') for i in range(30)]
    disks.append(DiskConfig(name='iso', type='dvd'))
    result = reconcile_all(driver, disks, enabled=True)
    assert len(result.disk) == 30
    ports = sorted(s.port for s in driver.attachments)
    assert ports == list(range(30))


def test_create_path_uses_lowest_free_slot() -> None:
    driver = FakeDriver(
        disks=[mb_disk('u0', 'box', 40960), mb_disk('u2', 'other', 100)],
        attachments={Slot(0): 'u0', Slot(2): 'u2'},
    )
    result = reconcile_all(driver, [want('data', 5)], enabled=True)
    assert driver.mutations == [
        ('create_disk', '/vms/box/data.vdi', 5 * GIGABYTE, 'VDI'),
        ('attach_disk', 1, 0, '/vms/box/data.vdi'),
    ]
    assert result.disk[0].name == 'data'
    assert result.disk[0].uuid == 'new-uuid-1'
    assert result.outcomes[0].kind is OutcomeKind.CREATED


def test_create_uses_requested_extension() -> None:
    driver = FakeDriver()
    reconcile_all(driver, [want('data', 1, disk_ext='vmdk')], enabled=True)
    assert driver.mutations[0] == (
        'create_disk',
        '/vms/box/data.vmdk',
        GIGABYTE,
        'VMDK',
    )


def test_create_skipped_when_controller_full() -> None:
    disks = [mb_disk(f'u{i}', f'd{i}', 10) for i in range(30)]
    attachments = {Slot(i): f'u{i}' for i in range(30)}
    driver = FakeDriver(disks=disks, attachments=attachments)
    result = reconcile_all(driver, [want('extra', 1)], enabled=True)
    assert driver.mutations == []
    assert result.disk == []
    assert result.outcomes[0].kind is OutcomeKind.SKIPPED
    assert 'no more available ports' in result.outcomes[0].reason


def test_reattach_skipped_when_controller_full() -> None:
    disks = [mb_disk(f'u{i}', f'd{i}', 10) for i in range(30)]
    disks.append(mb_disk('u-spare', 'spare', 1024))
    attachments = {Slot(i): f'u{i}' for i in range(30)}
    driver = FakeDriver(disks=disks, attachments=attachments)
    result = reconcile_all(driver, [want('spare', 1)], enabled=True)
    assert driver.mutations == []
    outcome = result.outcomes[0]
    assert outcome.kind is OutcomeKind.SKIPPED
    assert 'no more available ports' in outcome.reason
    assert outcome.slot is None
    assert result.as_dict()['disk'] == [{'uuid': 'u-spare', 'name': 'spare'}]
    assert 'u-spare' not in driver.attachments.values()


def test_primary_matched_by_slot_not_order() -> None:
    driver = FakeDriver(
        disks=[
            mb_disk('u-data', 'data', 10240),
            mb_disk('u-boot', 'ubuntu-disk001', 40960, fmt='VMDK'),
        ],
        attachments={Slot(0): 'u-boot', Slot(1): 'u-data'},
    )
    result = reconcile_all(
        driver, [want('vagrant_primary', 40, primary=True)], enabled=True
    )
    assert driver.mutations == []
    assert result.disk[0].uuid == 'u-boot'
    assert result.disk[0].name == 'vagrant_primary'


def test_shrink_is_rejected_without_mutation() -> None:
    driver = FakeDriver(
        disks=[mb_disk('u1', 'data', 10240)],
        attachments={Slot(1): 'u1'},
    )
    result = reconcile_all(driver, [want('data', 5)], enabled=True)
    assert driver.mutations == []
    outcome = result.outcomes[0]
    assert outcome.kind is OutcomeKind.REJECTED
    assert 'shrinking' in outcome.reason
    assert result.disk[0].uuid == 'u1'


def test_grow_resizable_format_single_resize() -> None:
    driver = FakeDriver(
        disks=[mb_disk('u1', 'data', 5120)],
        attachments={Slot(1): 'u1'},
    )
    result = reconcile_all(driver, [want('data', 10)], enabled=True)
    assert driver.mutations == [
        ('resize_disk', '/vms/box/data.vdi', 10 * GIGABYTE)
    ]
    assert result.disk[0].uuid == 'u1'
    assert result.outcomes[0].kind is OutcomeKind.RESIZED


def test_grow_vmdk_converts_and_rebuilds() -> None:
    driver = FakeDriver(
        disks=[mb_disk('u1', 'data', 5120, fmt='VMDK')],
        attachments={Slot(3): 'u1'},
    )
    result = reconcile_all(driver, [want('data', 10)], enabled=True)
    assert [c[0] for c in driver.mutations] == [
        'clone_disk',
        'resize_disk',
        'remove_disk',
        'close_medium',
        'clone_disk',
        'attach_disk',
        'close_medium',
    ]
    assert driver.mutations[0] == (
        'clone_disk',
        '/vms/box/data.vmdk',
        '/vms/box/data.vdi',
        'VDI',
    )
    assert driver.mutations[2] == ('remove_disk', 3, 0)
    assert driver.mutations[3] == ('close_medium', 'u1')
    assert driver.mutations[4][3] == 'VMDK'
    assert driver.mutations[5] == ('attach_disk', 3, 0, '/vms/box/data.vmdk')
    assert driver.mutations[6] == ('close_medium', '/vms/box/data.vdi')
    new_uuid = result.disk[0].uuid
    assert new_uuid != 'u1'
    assert driver.attachments[Slot(3)] == new_uuid


def test_detached_disk_is_reattached() -> None:
    driver = FakeDriver(
        disks=[mb_disk('u0', 'box', 40960), mb_disk('u1', 'data', 10240)],
        attachments={Slot(0): 'u0'},
    )
    result = reconcile_all(driver, [want('data', 10)], enabled=True)
    assert driver.mutations == [('attach_disk', 1, 0, '/vms/box/data.vdi')]
    assert result.outcomes[0].kind is OutcomeKind.REATTACHED
    assert result.disk[0].uuid == 'u1'


def test_second_run_is_idempotent() -> None:
    driver = FakeDriver(
        disks=[
            mb_disk('u0', 'box', 40960),
            mb_disk('u1', 'old', 2048, fmt='VMDK'),
        ],
        attachments={Slot(0): 'u0', Slot(1): 'u1'},
    )
    desired = [
        want('box', 40, primary=True),
        want('old', 4),
        want('fresh', 1),
    ]
    first = reconcile_all(driver, desired, enabled=True)
    driver.calls.clear()
    second = reconcile_all(driver, desired, enabled=True)
    assert driver.mutations == []
    assert second.as_dict() == first.as_dict()
    assert all(o.kind is OutcomeKind.NO_CHANGE for o in second.outcomes)


def test_floppy_and_dvd_skipped_with_warning() -> None:
    driver = FakeDriver()
    desired = [
        DiskConfig(name='boot-floppy', type='floppy'),
        DiskConfig(name='installer', type='dvd'),
    ]
    result = reconcile_all(driver, desired, enabled=True)
    assert result.as_dict() == {'disk': [], 'floppy': [], 'dvd': []}
    assert [o.kind for o in result.outcomes] == [OutcomeKind.SKIPPED] * 2
    assert 'Floppy disk configuration not yet supported' in result.outcomes[0].reason
    assert 'DVD disk configuration not yet supported' in result.outcomes[1].reason
    assert driver.mutations == []


def test_duplicate_names_rejected_others_continue() -> None:
    driver = FakeDriver(
        disks=[
            mb_disk('a', 'data', 100),
            mb_disk('b', 'data', 100, folder='/vms/elsewhere'),
        ],
    )
    result = reconcile_all(
        driver, [want('data', 1), want('logs', 1)], enabled=True
    )
    kinds = [o.kind for o in result.outcomes]
    assert kinds == [OutcomeKind.REJECTED, OutcomeKind.CREATED]
    assert 'matches 2 hypervisor disks' in result.outcomes[0].reason
    assert [m.name for m in result.disk] == ['logs']


def test_hypervisor_failure_propagates() -> None:
    from vmdisks.util import CmdError

    driver = FakeDriver(fail_on='create_disk')
    with pytest.raises(CmdError):
        reconcile_all(driver, [want('data', 1)], enabled=True)


def test_reconcile_one_refreshes_guest_info() -> None:
    driver = FakeDriver()
    reconcile_one(driver, want('a', 1), [])
    reconcile_one(driver, want('b', 1), list(driver.disks))
    assert sorted(s.port for s in driver.attachments) == [0, 1]
    assert [c[0] for c in driver.calls].count('show_guest_info') == 2


def test_plan_all_is_read_only_and_allocates_distinct_slots() -> None:
    driver = FakeDriver(
        disks=[
            mb_disk('u0', 'box', 40960),
            mb_disk('u1', 'grow', 1024),
            mb_disk('u2', 'big', 4096),
        ],
        attachments={Slot(0): 'u0', Slot(1): 'u1', Slot(2): 'u2'},
    )
    desired = [
        want('box', 40, primary=True),
        want('grow', 2),
        want('big', 1),
        want('new1', 1),
        want('new2', 1),
        DiskConfig(name='iso', type='dvd'),
    ]
    plan = plan_all(driver, desired)
    assert driver.mutations == []
    assert [p.action for p in plan] == [
        PlannedAction.NONE,
        PlannedAction.RESIZE,
        PlannedAction.REJECT_SHRINK,
        PlannedAction.CREATE,
        PlannedAction.CREATE,
        PlannedAction.SKIP,
    ]
    assert plan[3].slot == Slot(3)
    assert plan[4].slot == Slot(4)


@pytest.mark.parametrize(
    'desired, needle',
    [
        (
            [want('a', 1, primary=True), want('b', 1, primary=True)],
            'Only one primary disk',
        ),
        ([want('data', 1), want('data', 2)], 'defined more than once'),
    ],
)
def test_invalid_definitions_fail_before_any_call(desired, needle) -> None:
    driver = FakeDriver()
    with pytest.raises(DiskConfigError, match=needle):
        reconcile_all(driver, desired, enabled=True)
    with pytest.raises(DiskConfigError, match=needle):
        plan_all(driver, desired)
    assert driver.calls == []

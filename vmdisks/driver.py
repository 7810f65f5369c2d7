"""VBoxManage-backed hypervisor driver and parsing of its textual output.

The reconciliation core only sees the typed records defined here:
``ObservedDisk`` for entries of ``VBoxManage list hdds`` and ``GuestInfo`` for
``VBoxManage showvminfo --machinereadable``. Composite keys such as
``"SATA Controller-ImageUUID-0-0"`` are split once, in this module, into
``AttachmentKey`` values.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from .config import DEFAULT_CONTROLLER
from .errors import DriverError
from .slots import Slot
from .util import CmdResult, run_cmd, which

log = logger

IMAGE_UUID_ROLE = 'ImageUUID'

_ATTACHMENT_KEY_RE = re.compile(
    r'^(?P<controller>.+)-(?P<role>[A-Za-z]+)-(?P<port>\d+)-(?P<device>\d+)$'
)
_UUID_RE = re.compile(r'UUID:\s*([0-9a-fA-F-]{36})')


@dataclass(frozen=True)
class ObservedDisk:
    uuid: str
    name: str
    location: str
    capacity: str
    storage_format: str
    state: str = ''


@dataclass(frozen=True)
class AttachmentKey:
    controller: str
    role: str
    port: int
    device: int

    @property
    def slot(self) -> Slot:
        return Slot(self.port, self.device)

    @classmethod
    def parse(cls, key: str) -> AttachmentKey | None:
        m = _ATTACHMENT_KEY_RE.match(key)
        if m is None:
            return None
        return cls(
            controller=m.group('controller'),
            role=m.group('role'),
            port=int(m.group('port')),
            device=int(m.group('device')),
        )


@dataclass(frozen=True)
class GuestInfo:
    cfg_file: str = ''
    attachments: dict[AttachmentKey, str] = field(default_factory=dict)
    raw: dict[str, str] = field(default_factory=dict)

    @property
    def guest_folder(self) -> Path:
        if not self.cfg_file:
            raise DriverError('Guest info does not report a CfgFile path.')
        return Path(self.cfg_file).parent

    def attachment_map(
        self, controller: str = DEFAULT_CONTROLLER, role: str = IMAGE_UUID_ROLE
    ) -> dict[Slot, str]:
        """Occupied slots of ``controller`` mapped to the attached medium uuid."""
        return {
            key.slot: uuid
            for key, uuid in self.attachments.items()
            if key.controller == controller and key.role == role
        }


def _unquote(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] == '"':
        return text[1:-1]
    return text


def parse_machinereadable(text: str) -> GuestInfo:
    raw: dict[str, str] = {}
    for line in text.splitlines():
        if '=' not in line:
            continue
        key, value = line.split('=', 1)
        raw[_unquote(key)] = _unquote(value)
    attachments: dict[AttachmentKey, str] = {}
    for key, value in raw.items():
        akey = AttachmentKey.parse(key)
        if akey is None or akey.role != IMAGE_UUID_ROLE:
            continue
        if value and value.lower() != 'none':
            attachments[akey] = value
    return GuestInfo(
        cfg_file=raw.get('CfgFile', ''),
        attachments=attachments,
        raw=raw,
    )


def _disk_from_fields(fields: dict[str, str]) -> ObservedDisk:
    location = fields.get('Location', '')
    return ObservedDisk(
        uuid=fields.get('UUID', ''),
        name=Path(location).stem if location else '',
        location=location,
        capacity=fields.get('Capacity', ''),
        storage_format=fields.get('Storage format', ''),
        state=fields.get('State', ''),
    )


def parse_list_hdds(text: str) -> list[ObservedDisk]:
    disks: list[ObservedDisk] = []
    fields: dict[str, str] = {}
    for line in text.splitlines():
        if not line.strip():
            if fields:
                disks.append(_disk_from_fields(fields))
                fields = {}
            continue
        if ':' not in line:
            continue
        key, value = line.split(':', 1)
        fields[key.strip()] = value.strip()
    if fields:
        disks.append(_disk_from_fields(fields))
    return disks


def parse_created_uuid(text: str) -> str:
    m = _UUID_RE.search(text)
    if m is not None:
        return m.group(1)
    if ':' in text:
        return text.rsplit(':', 1)[-1].strip()
    raise DriverError(f'Could not find a medium UUID in: {text.strip()!r}')


class VBoxManageDriver:
    """Storage operations for one guest, executed through ``VBoxManage``."""

    def __init__(
        self,
        vm: str,
        *,
        controller: str = DEFAULT_CONTROLLER,
        vboxmanage: str = 'VBoxManage',
    ):
        if not vm:
            raise DriverError('A guest name or UUID is required.')
        self.vm = vm
        self.controller = controller
        self.vboxmanage = vboxmanage
        self._exe: str | None = None

    def _run(self, *args: str) -> CmdResult:
        if self._exe is None:
            exe = which(self.vboxmanage)
            if exe is None:
                raise DriverError(
                    f'{self.vboxmanage!r} was not found on PATH; install VirtualBox '
                    'or set vm.vboxmanage in the config.'
                )
            self._exe = exe
        return run_cmd([self._exe, *args], check=True, capture=True)

    def list_disks(self) -> list[ObservedDisk]:
        return parse_list_hdds(self._run('list', 'hdds').stdout)

    def show_guest_info(self) -> GuestInfo:
        res = self._run('showvminfo', self.vm, '--machinereadable')
        return parse_machinereadable(res.stdout)

    def create_disk(self, path: str, size: int, disk_format: str) -> str:
        res = self._run(
            'createmedium',
            '--filename',
            str(path),
            '--sizebyte',
            str(int(size)),
            '--format',
            disk_format,
        )
        return parse_created_uuid(res.stdout)

    def attach_disk(
        self, port: int, device: int, path: str, kind: str = 'hdd'
    ) -> None:
        self._run(
            'storageattach',
            self.vm,
            '--storagectl',
            self.controller,
            '--port',
            str(port),
            '--device',
            str(device),
            '--type',
            kind,
            '--medium',
            str(path),
        )

    def remove_disk(self, port: int, device: int) -> None:
        self._run(
            'storageattach',
            self.vm,
            '--storagectl',
            self.controller,
            '--port',
            str(port),
            '--device',
            str(device),
            '--medium',
            'none',
        )

    def resize_disk(self, path: str, size: int) -> None:
        self._run('modifymedium', str(path), '--resizebyte', str(int(size)))

    def close_medium(self, medium: str, *, delete: bool = True) -> None:
        # Deleting frees the file path so a converted clone can take it over.
        args = ['closemedium', 'disk', str(medium)]
        if delete:
            args.append('--delete')
        self._run(*args)

    def clone_disk(self, source: str, dest: str, disk_format: str) -> None:
        self._run('clonemedium', str(source), str(dest), '--format', disk_format)

"""Config dataclasses, TOML load/save, and validation of desired disk definitions."""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any

from .errors import DiskConfigError
from .numeric import string_to_bytes

DISK_TYPES = ('disk', 'floppy', 'dvd')
DISK_EXTS = ('vdi', 'vmdk', 'vhd')
DEFAULT_DISK_EXT = 'vdi'
DEFAULT_CONTROLLER = 'SATA Controller'


@dataclass
class VMConfig:
    name: str = ''
    controller: str = DEFAULT_CONTROLLER
    vboxmanage: str = 'VBoxManage'


@dataclass
class DiskConfig:
    name: str
    type: str = 'disk'
    primary: bool = False
    size: int | None = None
    disk_ext: str = DEFAULT_DISK_EXT
    provider_config: dict[str, Any] = field(default_factory=dict)

    @property
    def disk_format(self) -> str:
        return self.disk_ext.upper()


@dataclass
class VMDisksConfig:
    vm: VMConfig = field(default_factory=VMConfig)
    disks: list[DiskConfig] = field(default_factory=list)
    verbosity: int = 1


def parse_size(value: Any) -> int | None:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise DiskConfigError(f'Invalid disk size: {value!r}')
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    nbytes = string_to_bytes(text)
    if nbytes is None:
        raise DiskConfigError(
            f'Invalid disk size {value!r}; use bytes or a value like "10GB".'
        )
    return nbytes


def disk_from_dict(raw: dict) -> DiskConfig:
    name = str(raw.get('name', '')).strip()
    if not name:
        raise DiskConfigError('Every disk needs a non-empty name.')
    provider_config = raw.get('provider_config', {}) or {}
    if not isinstance(provider_config, dict):
        raise DiskConfigError(f"Disk '{name}': provider_config must be a table.")
    return DiskConfig(
        name=name,
        type=str(raw.get('type', 'disk')).strip().lower(),
        primary=bool(raw.get('primary', False)),
        size=parse_size(raw.get('size', None)),
        disk_ext=str(raw.get('disk_ext', DEFAULT_DISK_EXT)).strip().lower(),
        provider_config=dict(provider_config),
    )


def validate_disks(disks: list[DiskConfig]) -> None:
    """Raise DiskConfigError on the first problem found across definitions."""
    seen: set[tuple[str, str]] = set()
    primaries: list[str] = []
    for disk in disks:
        if disk.type not in DISK_TYPES:
            raise DiskConfigError(
                f"Disk '{disk.name}' has type {disk.type!r}; "
                f'expected one of: {", ".join(DISK_TYPES)}'
            )
        key = (disk.type, disk.name)
        if key in seen:
            raise DiskConfigError(
                f"Disk name '{disk.name}' is defined more than once for type {disk.type!r}."
            )
        seen.add(key)
        if disk.type != 'disk':
            continue
        if disk.primary:
            primaries.append(disk.name)
        if disk.size is None or disk.size <= 0:
            raise DiskConfigError(
                f"Disk '{disk.name}' requires a positive size."
            )
        if disk.disk_ext not in DISK_EXTS:
            raise DiskConfigError(
                f"Disk '{disk.name}' has unsupported disk_ext {disk.disk_ext!r}; "
                f'expected one of: {", ".join(DISK_EXTS)}'
            )
    if len(primaries) > 1:
        raise DiskConfigError(
            f'Only one primary disk is allowed, got: {", ".join(primaries)}'
        )


def _toml_escape(s: str) -> str:
    return s.replace('\\', '\\\\').replace('"', '\\"')


_BARE_KEY_RE = re.compile(r'^[A-Za-z0-9_-]+$')


def _toml_key(key: object) -> str:
    key = str(key)
    if _BARE_KEY_RE.match(key):
        return key
    return f'"{_toml_escape(key)}"'


def _toml_value(val: object) -> str:
    if isinstance(val, bool):
        return 'true' if val else 'false'
    if isinstance(val, (int, float)):
        return str(val)
    if isinstance(val, list):
        return '[' + ', '.join(_toml_value(item) for item in val) + ']'
    if isinstance(val, dict):
        # Inline table, so provider_config keeps nested provider sections.
        items = ', '.join(
            f'{_toml_key(k)} = {_toml_value(v)}' for k, v in val.items()
        )
        return '{' + items + '}' if items else '{}'
    return f'"{_toml_escape(str(val))}"'


def dump_toml(cfg: VMDisksConfig) -> str:
    lines: list[str] = []
    if cfg.verbosity != 1:
        lines.append(f'verbosity = {cfg.verbosity}')
        lines.append('')
    lines.append('[vm]')
    for k, v in asdict(cfg.vm).items():
        lines.append(f'{k} = {_toml_value(v)}')
    lines.append('')
    for disk in cfg.disks:
        d = asdict(disk)
        provider_config = d.pop('provider_config')
        lines.append('[[disks]]')
        for k, v in d.items():
            if v is None:
                continue
            lines.append(f'{k} = {_toml_value(v)}')
        if provider_config:
            lines.append('[disks.provider_config]')
            for k, v in provider_config.items():
                lines.append(f'{_toml_key(k)} = {_toml_value(v)}')
        lines.append('')
    return '\n'.join(lines).rstrip() + '\n'


def loads(text: str) -> VMDisksConfig:
    raw = tomllib.loads(text)
    cfg = VMDisksConfig()
    body = raw.get('vm', None)
    if isinstance(body, dict):
        for k, v in body.items():
            if hasattr(cfg.vm, k):
                setattr(cfg.vm, k, v)
    for item in raw.get('disks', []):
        if not isinstance(item, dict):
            raise DiskConfigError(f'Disk entries must be tables, got: {item!r}')
        cfg.disks.append(disk_from_dict(item))
    if 'verbosity' in raw:
        cfg.verbosity = int(raw['verbosity'])
    validate_disks(cfg.disks)
    return cfg


def load(path: Path) -> VMDisksConfig:
    return loads(path.read_text(encoding='utf-8'))


def save(path: Path, cfg: VMDisksConfig) -> None:
    path.write_text(dump_toml(cfg), encoding='utf-8')

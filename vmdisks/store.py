"""Persisted disk metadata: the uuid/name records produced by reconciliation."""

from __future__ import annotations

import tomllib
from pathlib import Path

import ubelt as ub

from .results import ConfiguredDisks, DiskMetadata

BUCKETS = ('disk', 'floppy', 'dvd')


def _appdir(appname: str, kind: str) -> Path:
    p = ub.Path.appdir(appname, type=kind).ensuredir()
    return Path(p)


def meta_path(vm_name: str) -> Path:
    return _appdir('vmdisks', 'data') / vm_name / 'disk_meta.toml'


def _toml_escape(s: str) -> str:
    return s.replace('\\', '\\\\').replace('"', '\\"')


def load_meta(path: Path) -> dict[str, list[DiskMetadata]]:
    out: dict[str, list[DiskMetadata]] = {b: [] for b in BUCKETS}
    if not path.exists():
        return out
    raw = tomllib.loads(path.read_text(encoding='utf-8'))
    for bucket in BUCKETS:
        for item in raw.get(bucket, []):
            if not isinstance(item, dict):
                continue
            uuid = str(item.get('uuid', '')).strip()
            name = str(item.get('name', '')).strip()
            if not uuid or not name:
                continue
            out[bucket].append(DiskMetadata(uuid=uuid, name=name))
    return out


def save_meta(path: Path, vm_name: str, result: ConfiguredDisks) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [f'vm = "{_toml_escape(vm_name)}"', '']
    for bucket in BUCKETS:
        for meta in getattr(result, bucket):
            lines.append(f'[[{bucket}]]')
            lines.append(f'uuid = "{_toml_escape(meta.uuid)}"')
            lines.append(f'name = "{_toml_escape(meta.name)}"')
            lines.append('')
    path.write_text('\n'.join(lines).rstrip() + '\n', encoding='utf-8')
    return path

"""Size parsing and byte/megabyte conversion helpers."""

from __future__ import annotations

import re

KILOBYTE = 1024
MEGABYTE = KILOBYTE * 1024
GIGABYTE = MEGABYTE * 1024
TERABYTE = GIGABYTE * 1024

_UNITS = {
    'KB': KILOBYTE,
    'MB': MEGABYTE,
    'GB': GIGABYTE,
    'TB': TERABYTE,
}

# Units as printed by `VBoxManage list hdds` in the Capacity field.
_CAPACITY_UNITS = {
    'bytes': 1,
    'kbytes': KILOBYTE,
    'mbytes': MEGABYTE,
    'gbytes': GIGABYTE,
    'tbytes': TERABYTE,
}

_SIZE_RE = re.compile(r'^\s*(\d+)\s*([KMGT]B)\s*$', re.IGNORECASE)


def string_to_bytes(text: str) -> int | None:
    """Convert a size such as '10GB' or '512 MB' to bytes, else None."""
    m = _SIZE_RE.match(str(text))
    if m is None:
        return None
    return int(m.group(1)) * _UNITS[m.group(2).upper()]


def bytes_to_megabytes(nbytes: int | float) -> float:
    return round(float(nbytes) / MEGABYTE, 2)


def capacity_to_megabytes(capacity: str) -> float:
    """Normalize a hypervisor capacity string like '10240 MBytes'.

    A bare number is taken to already be in megabytes.
    """
    parts = str(capacity).split()
    if not parts:
        raise ValueError(f'Empty capacity value: {capacity!r}')
    value = float(parts[0])
    if len(parts) == 1:
        return round(value, 2)
    unit = parts[1].strip().lower()
    if unit not in _CAPACITY_UNITS:
        raise ValueError(f'Unknown capacity unit in {capacity!r}')
    return bytes_to_megabytes(value * _CAPACITY_UNITS[unit])

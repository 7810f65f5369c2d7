"""Opt-in gate for experimental features."""

from __future__ import annotations

import os

ENV_VAR = 'VMDISKS_EXPERIMENTAL'
DISKS_FEATURE = 'disks'


def enabled_features() -> set[str]:
    raw = os.environ.get(ENV_VAR, '')
    return {part.strip() for part in raw.split(',') if part.strip()}


def feature_enabled(name: str) -> bool:
    """True when ``VMDISKS_EXPERIMENTAL`` is ``1`` or lists ``name``."""
    feats = enabled_features()
    return '1' in feats or name in feats

"""Declarative reconciliation of VirtualBox guest disks."""

from __future__ import annotations

__version__ = '0.1.0'

from .config import DiskConfig, VMDisksConfig
from .driver import GuestInfo, ObservedDisk, VBoxManageDriver
from .errors import (
    AmbiguousDiskError,
    DiskConfigError,
    DiskLimitExceededError,
    ResizeStepError,
    VMDisksError,
)
from .reconcile import plan_all, reconcile_all, reconcile_one
from .results import ConfiguredDisks, DiskMetadata, DiskOutcome, OutcomeKind

__all__ = [
    'AmbiguousDiskError',
    'ConfiguredDisks',
    'DiskConfig',
    'DiskConfigError',
    'DiskLimitExceededError',
    'DiskMetadata',
    'DiskOutcome',
    'GuestInfo',
    'ObservedDisk',
    'OutcomeKind',
    'ResizeStepError',
    'VBoxManageDriver',
    'VMDisksConfig',
    'VMDisksError',
    'plan_all',
    'reconcile_all',
    'reconcile_one',
]

"""Project-specific exception types."""

from __future__ import annotations


class VMDisksError(RuntimeError):
    """Base error for domain-level vmdisks failures."""


class DiskConfigError(VMDisksError):
    """Raised when desired disk definitions are invalid."""


class DiskLimitExceededError(VMDisksError):
    """Raised when more disks are defined than a controller can hold."""

    def __init__(self, count: int, limit: int):
        self.count = count
        self.limit = limit
        super().__init__(
            f'{count} disks of type "disk" are defined but a guest can only '
            f'attach up to {limit} disks per controller, including the primary disk.'
        )


class AmbiguousDiskError(VMDisksError):
    """Raised when several hypervisor disks carry the name of one desired disk."""

    def __init__(self, name: str, uuids: list[str]):
        self.name = name
        self.uuids = list(uuids)
        super().__init__(
            f"Disk name '{name}' matches {len(uuids)} hypervisor disks "
            f'({", ".join(uuids)}); refusing to guess which one to manage.'
        )


class DriverError(VMDisksError):
    """Raised when the hypervisor tool is unavailable or its output is unusable."""


class ResizeStepError(VMDisksError):
    """Raised when a step of the convert-resize-convert sequence fails.

    ``state`` is the last state the sequence reached successfully and
    ``step`` names the transition that failed. No rollback is attempted, so
    when ``state`` is ``DETACHED`` or later the guest may be missing the disk.
    """

    def __init__(self, disk_name: str, state, step: str, cause: Exception):
        self.disk_name = disk_name
        self.state = state
        self.step = step
        self.cause = cause
        super().__init__(
            f"Resizing disk '{disk_name}' failed during step '{step}' "
            f'after reaching state {state.name}: {cause}'
        )

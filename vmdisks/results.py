"""Result dataclasses returned by reconciliation and planning."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from .slots import Slot


@dataclass(frozen=True)
class DiskMetadata:
    uuid: str
    name: str

    def as_dict(self) -> dict[str, str]:
        return {'uuid': self.uuid, 'name': self.name}


class OutcomeKind(enum.Enum):
    CREATED = 'created'
    RESIZED = 'resized'
    REATTACHED = 'reattached'
    NO_CHANGE = 'no_change'
    SKIPPED = 'skipped'
    REJECTED = 'rejected'


@dataclass(frozen=True)
class DiskOutcome:
    """What happened to one desired disk.

    ``metadata`` is None when no disk exists in the converged state (for
    example an unsupported type, or a disk that could not be created).
    ``reason`` explains SKIPPED and REJECTED outcomes and any warning that
    accompanied the others.
    """

    name: str
    disk_type: str
    kind: OutcomeKind
    metadata: DiskMetadata | None = None
    reason: str = ''
    slot: Slot | None = None

    @property
    def is_warning(self) -> bool:
        return self.kind in {OutcomeKind.SKIPPED, OutcomeKind.REJECTED} or bool(
            self.reason
        )


@dataclass
class ConfiguredDisks:
    disk: list[DiskMetadata] = field(default_factory=list)
    floppy: list[DiskMetadata] = field(default_factory=list)
    dvd: list[DiskMetadata] = field(default_factory=list)
    outcomes: list[DiskOutcome] = field(default_factory=list)

    def add(self, outcome: DiskOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.metadata is not None:
            getattr(self, outcome.disk_type).append(outcome.metadata)

    def as_dict(self) -> dict[str, list[dict[str, str]]]:
        return {
            'disk': [m.as_dict() for m in self.disk],
            'floppy': [m.as_dict() for m in self.floppy],
            'dvd': [m.as_dict() for m in self.dvd],
        }


class PlannedAction(enum.Enum):
    CREATE = 'create'
    RESIZE = 'resize'
    REATTACH = 'reattach'
    NONE = 'none'
    REJECT_SHRINK = 'reject_shrink'
    SKIP = 'skip'


@dataclass(frozen=True)
class PlanEntry:
    name: str
    disk_type: str
    action: PlannedAction
    uuid: str = ''
    slot: Slot | None = None
    detail: str = ''

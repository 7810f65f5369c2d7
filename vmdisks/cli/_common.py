from __future__ import annotations

import os
import sys
from pathlib import Path

import scriptconfig as scfg
from loguru import logger

from ..config import VMDisksConfig, load
from ..driver import VBoxManageDriver

log = logger


class _BaseCommand(scfg.DataConfig):
    """Base options shared by all commands."""

    config = scfg.Value(
        None, help='Path to config TOML (default: .vmdisks.toml).'
    )
    vm = scfg.Value('', help='Guest name or UUID override.')
    verbose = scfg.Value(
        0,
        short_alias=['v'],
        isflag='counter',
        help='Increase verbosity (-v, -vv).',
    )
    yes = scfg.Value(
        False,
        isflag=True,
        help='Auto-approve changes to the guest storage.',
    )


def _cfg_path(p: str | None) -> Path:
    return Path(p or '.vmdisks.toml').resolve()


def _load_cfg_with_path(
    config_path: str | None, *, vm_opt: str = ''
) -> tuple[VMDisksConfig, Path]:
    path = _cfg_path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f'Config not found: {path}. '
            f'Run: vmdisks config init --config {path} --vm <guest>'
        )
    cfg = load(path)
    vm_name = str(vm_opt or '').strip()
    if vm_name:
        cfg.vm.name = vm_name
    if not cfg.vm.name:
        raise RuntimeError(
            f'No guest selected. Set vm.name in {path} or pass --vm.'
        )
    return cfg, path


def _make_driver(cfg: VMDisksConfig) -> VBoxManageDriver:
    return VBoxManageDriver(
        cfg.vm.name,
        controller=cfg.vm.controller,
        vboxmanage=cfg.vm.vboxmanage,
    )


def _confirm_changes(*, yes: bool, purpose: str) -> None:
    if yes:
        return
    if not sys.stdin.isatty():
        raise RuntimeError(
            'Changing guest storage requires confirmation, but stdin is not interactive. '
            'Re-run with --yes.'
        )
    print('About to modify guest storage:')
    print(f'  {purpose}')
    ans = input('Continue? [y/N]: ').strip().lower()
    if ans not in {'y', 'yes'}:
        raise RuntimeError('Aborted by user.')


_LEVELS = {0: 'WARNING', 1: 'INFO', 2: 'DEBUG'}

_FMT_SHORT = '<level>{level: <8}</level> | <level>{message}</level>'
_FMT_LONG = (
    '<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> '
    '| <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> '
    '- <level>{message}</level>'
)


def _setup_logging(args_verbose: int, cfg_verbosity: int) -> None:
    """Route loguru to stderr; -vvv also shows raw VBoxManage output."""
    logger.remove()
    effective_verbosity = args_verbose if args_verbose > 0 else cfg_verbosity
    level = _LEVELS.get(max(effective_verbosity, 0), 'TRACE')
    colorize = sys.stderr.isatty() and os.getenv('NO_COLOR') is None
    logger.add(
        sys.stderr,
        level=level,
        colorize=colorize,
        format=_FMT_LONG if effective_verbosity >= 2 else _FMT_SHORT,
    )
    log.debug('Logging configured at {}', level)


def _count_verbose(argv: list[str]) -> int:
    count = 0
    for item in argv:
        if item == '--verbose':
            count += 1
        elif item[:1] == '-' and item[1:] and set(item[1:]) == {'v'}:
            count += len(item) - 1
    return count


__all__ = [name for name in globals() if not name.startswith('__')]

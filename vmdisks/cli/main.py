"""Top-level modal CLI wiring and logging setup."""

from __future__ import annotations

import sys
import tomllib
from pathlib import Path

import scriptconfig as scfg

from ..config import load
from ..errors import VMDisksError
from ..features import DISKS_FEATURE, ENV_VAR, feature_enabled
from ..reconcile import plan_all, reconcile_all
from ..report import render_configured, render_inventory, render_plan
from ..results import OutcomeKind
from ..store import meta_path, save_meta
from ..util import expand
from ._common import (
    _BaseCommand,
    _cfg_path,
    _confirm_changes,
    _count_verbose,
    _load_cfg_with_path,
    _make_driver,
    _setup_logging,
    log,
)
from .config import ConfigModalCLI


class ApplyCLI(_BaseCommand):
    """Create, attach, and grow guest disks to match the config."""

    enable = scfg.Value(
        False,
        isflag=True,
        help=f'Enable disk management even if {ENV_VAR} does not list "{DISKS_FEATURE}".',
    )
    dry_run = scfg.Value(
        False, isflag=True, help='Print planned actions without running.'
    )
    persist = scfg.Value(
        False,
        isflag=True,
        help='Persist the resulting disk uuids to the metadata file.',
    )
    meta_out = scfg.Value(
        '',
        help='Metadata file path (default: per-guest file in the app data dir).',
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg, _ = _load_cfg_with_path(args.config, vm_opt=args.vm)
        driver = _make_driver(cfg)
        if args.dry_run:
            print(render_plan(plan_all(driver, cfg.disks), vm=cfg.vm.name))
            return 0
        enabled = bool(args.enable) or feature_enabled(DISKS_FEATURE)
        if not enabled:
            print(
                f'Disk management is disabled. Set {ENV_VAR}={DISKS_FEATURE} '
                'or pass --enable.',
                file=sys.stderr,
            )
            return 0
        _confirm_changes(
            yes=bool(args.yes),
            purpose=f"Reconcile {len(cfg.disks)} disk definitions for guest '{cfg.vm.name}'.",
        )
        result = reconcile_all(driver, cfg.disks, enabled=True)
        print(render_configured(result, vm=cfg.vm.name))
        if args.persist or args.meta_out:
            out = (
                Path(expand(args.meta_out))
                if args.meta_out
                else meta_path(cfg.vm.name)
            )
            save_meta(out, cfg.vm.name, result)
            log.info('Saved disk metadata to {}', out)
        rejected = [
            o for o in result.outcomes if o.kind is OutcomeKind.REJECTED
        ]
        return 1 if rejected else 0


class PlanCLI(_BaseCommand):
    """Show what apply would change, using read-only queries."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg, _ = _load_cfg_with_path(args.config, vm_opt=args.vm)
        driver = _make_driver(cfg)
        print(render_plan(plan_all(driver, cfg.disks), vm=cfg.vm.name))
        return 0


class ListCLI(_BaseCommand):
    """List hypervisor disks and the guest's controller slots."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg, _ = _load_cfg_with_path(args.config, vm_opt=args.vm)
        driver = _make_driver(cfg)
        print(
            render_inventory(
                driver.list_disks(),
                driver.show_guest_info(),
                controller=cfg.vm.controller,
            )
        )
        return 0


class VMDisksModalCLI(scfg.ModalCLI):
    """Declarative disk management for VirtualBox guests."""

    config = ConfigModalCLI
    apply = ApplyCLI
    plan = PlanCLI
    list = ListCLI


def _config_from_argv(argv: list[str]) -> str | None:
    for idx, item in enumerate(argv):
        if item == '--config':
            return argv[idx + 1] if idx + 1 < len(argv) else None
        if item.startswith('--config='):
            return item.split('=', 1)[1]
    return None


def main(argv: list[str] | None = None) -> None:
    verbosity = 1
    if argv is None:
        argv = sys.argv[1:]
    config_value = _config_from_argv(argv)
    try:
        if config_value is not None or _cfg_path(None).exists():
            verbosity = load(_cfg_path(config_value)).verbosity
    except (OSError, ValueError, tomllib.TOMLDecodeError, VMDisksError) as ex:
        # The command itself reports the broken config.
        log.debug('Could not read verbosity from config: {}', ex)
        verbosity = 1

    _setup_logging(_count_verbose(argv), verbosity)

    try:
        rc = VMDisksModalCLI.main(argv=argv, _noexit=True)
    except Exception as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.error('Unhandled vmdisks error: {}', ex)
        sys.exit(2)

    if any(flag in argv for flag in ('-h', '--help')):
        sys.exit(0)
    if isinstance(rc, int):
        sys.exit(rc)
    sys.exit(0)

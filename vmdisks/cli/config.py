from __future__ import annotations

import sys

import scriptconfig as scfg

from ..config import DiskConfig, VMDisksConfig, dump_toml, load, parse_size, save
from ._common import _BaseCommand, _cfg_path


class InitCLI(_BaseCommand):
    """Write a starter config with one primary disk for a guest."""

    primary_size = scfg.Value(
        '40GB', help='Size of the primary disk, in bytes or like "40GB".'
    )
    force = scfg.Value(
        False,
        isflag=True,
        help='Overwrite an existing config file.',
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        path = _cfg_path(args.config)
        if path.exists() and not args.force:
            print(f'Config already exists: {path}', file=sys.stderr)
            print('Use --force to overwrite it.', file=sys.stderr)
            return 2
        cfg = VMDisksConfig()
        cfg.vm.name = str(args.vm or '').strip()
        cfg.disks.append(
            DiskConfig(
                name='primary',
                primary=True,
                size=parse_size(args.primary_size),
            )
        )
        save(path, cfg)
        print(f'Wrote config: {path}')
        if not cfg.vm.name:
            print('Set vm.name (or pass --vm) before running apply.')
        return 0


class ConfigShowCLI(_BaseCommand):
    """Show the parsed config after validation."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        path = _cfg_path(args.config)
        cfg = load(path)
        if str(args.vm or '').strip():
            cfg.vm.name = str(args.vm).strip()
        print(f'# Config: {path}')
        print(dump_toml(cfg), end='')
        return 0


class ConfigModalCLI(scfg.ModalCLI):
    """Create and inspect vmdisks config files."""

    init = InitCLI
    show = ConfigShowCLI

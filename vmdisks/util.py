"""Subprocess helpers for driving VBoxManage."""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence

from loguru import logger

log = logger

# VBoxManage reports failures on stderr as lines like
# "VBoxManage: error: Could not find file for the medium ..."
_TOOL_ERROR_PREFIX = 'error:'


@dataclass(frozen=True)
class CmdResult:
    code: int
    stdout: str
    stderr: str


def tool_error_lines(stderr: str) -> list[str]:
    """Pull the ``error:`` messages out of a VBoxManage stderr dump."""
    found = []
    for line in stderr.splitlines():
        _, sep, rest = line.partition(_TOOL_ERROR_PREFIX)
        if sep and rest.strip():
            found.append(rest.strip())
    return found


class CmdError(RuntimeError):
    def __init__(self, cmd: Sequence[str] | str, result: CmdResult):
        self.cmd = cmd
        self.result = result
        errors = tool_error_lines(result.stderr)
        detail = '\n'.join(errors) if errors else result.stderr
        if not isinstance(cmd, str):
            cmd = shell_join(cmd)
        super().__init__(
            f'Command failed (code={result.code}): {cmd}\n{detail}'.strip()
        )

    @property
    def errors(self) -> list[str]:
        return tool_error_lines(self.result.stderr)


def shell_join(cmd: Sequence[str]) -> str:
    return ' '.join(shlex.quote(str(c)) for c in cmd)


def run_cmd(
    cmd: Sequence[str],
    *,
    check: bool = True,
    capture: bool = True,
    env: Optional[dict[str, str]] = None,
) -> CmdResult:
    cmd = [str(c) for c in cmd]
    log.opt(depth=1).debug('RUN: {}', shell_join(cmd))
    p = subprocess.run(cmd, capture_output=capture, text=True, env=env)
    res = CmdResult(p.returncode, p.stdout or '', p.stderr or '')
    if p.returncode == 0:
        log.opt(depth=1).trace('ok: {}', res.stdout.strip())
        return res
    if check:
        log.opt(depth=1).error(
            'Command failed code={} cmd={} stderr={}',
            p.returncode,
            shell_join(cmd),
            res.stderr.strip(),
        )
        raise CmdError(cmd, res)
    log.opt(depth=1).debug('Command exited code={}', p.returncode)
    return res


def which(cmd: str) -> Optional[str]:
    return shutil.which(cmd)


def expand(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(path))

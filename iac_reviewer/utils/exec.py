# iac_reviewer/utils/exec.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from iac_reviewer.errors import ExecError

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 60.0


@dataclass
class ExecResult:
    stdout: str
    stderr: str
    exit_code: int


async def execute_command(
    command: str,
    args: Sequence[str] = (),
    *,
    cwd: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    timeout_s: float = DEFAULT_TIMEOUT_S,
) -> ExecResult:
    """
    Run ``command`` with ``args`` as an argv list (no shell) and capture
    trimmed stdout/stderr. A non-zero exit is reported, not raised.

    Raises ExecError when the process cannot be started or exceeds
    ``timeout_s``; a timed-out process is killed before raising.
    """
    argv = [command, *args]
    log.debug("Executing command: %s", " ".join(argv))

    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=dict(env) if env is not None else None,
        )
    except OSError as e:
        raise ExecError(f"Failed to execute command: {e}") from e

    try:
        out, err = await asyncio.wait_for(proc.communicate(), timeout=timeout_s)
    except asyncio.TimeoutError as e:
        proc.kill()
        await proc.wait()
        raise ExecError(f"Command timed out after {timeout_s:g}s: {command}") from e

    exit_code = proc.returncode if proc.returncode is not None else 1
    result = ExecResult(
        stdout=out.decode("utf-8", errors="replace").strip(),
        stderr=err.decode("utf-8", errors="replace").strip(),
        exit_code=exit_code,
    )
    if exit_code == 0:
        log.debug("Command completed successfully")
    else:
        log.debug("Command failed with exit code %d: %s", exit_code, result.stderr)
    return result


__all__ = ["ExecResult", "execute_command"]

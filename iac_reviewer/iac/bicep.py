# iac_reviewer/iac/bicep.py
"""
Bicep CLI download/cache and compilation to ARM JSON.

Compilation never raises: each file yields a CompilationResult, so one broken
template does not stop the review of the others.
"""

from __future__ import annotations

import json
import logging
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from iac_reviewer.config import DEFAULT_BICEP_VERSION
from iac_reviewer.errors import BicepInstallError, ExecError
from iac_reviewer.telemetry.metrics import inc_compilation
from iac_reviewer.utils.exec import DEFAULT_TIMEOUT_S, execute_command

log = logging.getLogger(__name__)

BICEP_VERSION = DEFAULT_BICEP_VERSION
RELEASE_URL = "https://github.com/Azure/bicep/releases/download/{version}/{asset}"
LONG_ERROR_CHARS = 500


@dataclass
class CompilationResult:
    file_path: str
    success: bool
    arm_template: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


def bicep_platform_info(
    system: Optional[str] = None,
    machine: Optional[str] = None,
    version: str = BICEP_VERSION,
) -> Tuple[str, str]:
    """Return ``(binary_name, download_url)`` for the given (or current) host."""
    system = (system or platform.system()).lower()
    machine = (machine or platform.machine()).lower()

    if system.startswith("win"):
        binary, asset = "bicep.exe", "bicep-win-x64.exe"
    elif system == "darwin":
        asset = "bicep-osx-arm64" if machine in ("arm64", "aarch64") else "bicep-osx-x64"
        binary = "bicep"
    elif system == "linux":
        if machine in ("arm64", "aarch64"):
            asset = "bicep-linux-arm64"
        elif machine.startswith("arm"):
            asset = "bicep-linux-arm"
        else:
            asset = "bicep-linux-x64"
        binary = "bicep"
    else:
        raise BicepInstallError(f"Unsupported platform: {system}")

    return binary, RELEASE_URL.format(version=version, asset=asset)


async def _download(client: httpx.AsyncClient, url: str, dest: Path) -> None:
    async with client.stream("GET", url, follow_redirects=True) as resp:
        if resp.status_code != 200:
            raise BicepInstallError(
                f"Failed to download file: HTTP {resp.status_code} {resp.reason_phrase}"
            )
        with dest.open("wb") as fh:
            async for chunk in resp.aiter_bytes():
                fh.write(chunk)


async def ensure_bicep_cli(
    runner_temp: Optional[str],
    *,
    version: str = BICEP_VERSION,
    client: Optional[httpx.AsyncClient] = None,
    system: Optional[str] = None,
    machine: Optional[str] = None,
) -> str:
    """
    Return the path of a usable Bicep CLI, downloading it into
    ``runner_temp`` on first use. An existing binary there is reused as is.
    """
    if not runner_temp:
        raise BicepInstallError(
            "RUNNER_TEMP environment variable not set. "
            "This action must run in a GitHub Actions environment."
        )

    binary, url = bicep_platform_info(system, machine, version)
    bicep_path = Path(runner_temp) / binary

    if bicep_path.exists():
        log.info(
            "Bicep CLI already cached at %s, skipping download (version: %s)",
            bicep_path,
            version,
        )
        return str(bicep_path)

    log.info("Downloading Bicep CLI %s from %s to %s", version, url, bicep_path)

    own_client = client is None
    http = client or httpx.AsyncClient(timeout=120)
    try:
        await _download(http, url, bicep_path)
    except (httpx.HTTPError, OSError, BicepInstallError) as e:
        bicep_path.unlink(missing_ok=True)
        raise BicepInstallError(f"Failed to download Bicep CLI: {e}") from e
    finally:
        if own_client:
            await http.aclose()

    if not binary.endswith(".exe"):
        bicep_path.chmod(0o755)

    log.info("Bicep CLI downloaded and ready")
    return str(bicep_path)


async def compile_bicep_file(
    bicep_cli_path: str,
    file_path: str,
    *,
    timeout_s: float = DEFAULT_TIMEOUT_S,
) -> CompilationResult:
    """Compile one file with ``bicep build <file> --stdout``."""
    log.info("Compiling %s", file_path)

    try:
        result = await execute_command(
            bicep_cli_path, ["build", file_path, "--stdout"], timeout_s=timeout_s
        )
    except ExecError as e:
        log.warning("Failed to compile %s: %s", file_path, e)
        return CompilationResult(file_path=file_path, success=False, error=str(e))

    # Bicep reports diagnostics on stderr even when it exits 0.
    if result.exit_code != 0 or result.stderr:
        error = result.stderr or "Unknown compilation error"
        log.warning("Compilation failed for %s: %s", file_path, error)
        return CompilationResult(file_path=file_path, success=False, error=error)

    try:
        template = json.loads(result.stdout)
    except ValueError as e:
        log.warning("Failed to parse ARM JSON for %s: %s", file_path, e)
        return CompilationResult(
            file_path=file_path, success=False, error=f"Failed to parse ARM template: {e}"
        )

    if not isinstance(template, dict):
        log.warning("Failed to parse ARM JSON for %s: not a JSON object", file_path)
        return CompilationResult(
            file_path=file_path,
            success=False,
            error="Failed to parse ARM template: not a JSON object",
        )

    log.info("Successfully compiled %s", file_path)
    return CompilationResult(file_path=file_path, success=True, arm_template=template)


async def compile_bicep_files(
    bicep_cli_path: str,
    file_paths: Sequence[str],
    *,
    timeout_s: float = DEFAULT_TIMEOUT_S,
) -> List[CompilationResult]:
    log.info("Compiling %d Bicep file(s)", len(file_paths))

    results: List[CompilationResult] = []
    # One at a time; the CLI is a heavyweight .NET process.
    for file_path in file_paths:
        result = await compile_bicep_file(bicep_cli_path, file_path, timeout_s=timeout_s)
        inc_compilation(result.success)
        results.append(result)

    succeeded = sum(1 for r in results if r.success)
    log.info(
        "Compilation complete: %d succeeded, %d failed", succeeded, len(results) - succeeded
    )
    return results


def format_compilation_errors(results: Sequence[CompilationResult]) -> Optional[str]:
    failures = [r for r in results if not r.success]
    if not failures:
        return None

    lines: List[str] = [
        "## Bicep Compilation Errors",
        "",
        f"Found {len(failures)} file(s) with compilation errors:",
        "",
    ]
    for failure in failures:
        error = failure.error or "Unknown error"
        lines.append(f"### `{failure.file_path}`")
        lines.append("")
        if len(error) > LONG_ERROR_CHARS:
            lines.extend(
                [
                    "<details>",
                    f"<summary>⚠️ Error Details ({len(error)} chars)</summary>",
                    "",
                    "```",
                    error,
                    "```",
                    "",
                    "</details>",
                ]
            )
        else:
            lines.extend(["```", error, "```"])
        lines.append("")

    return "\n".join(lines)


__all__ = [
    "BICEP_VERSION",
    "CompilationResult",
    "bicep_platform_info",
    "ensure_bicep_cli",
    "compile_bicep_file",
    "compile_bicep_files",
    "format_compilation_errors",
]

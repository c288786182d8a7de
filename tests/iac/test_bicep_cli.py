from __future__ import annotations

import json
import os
import stat

import httpx
import pytest

from iac_reviewer.errors import BicepInstallError, ExecError
from iac_reviewer.iac import bicep
from iac_reviewer.iac.bicep import (
    CompilationResult,
    bicep_platform_info,
    compile_bicep_file,
    compile_bicep_files,
    ensure_bicep_cli,
    format_compilation_errors,
)
from iac_reviewer.utils.exec import ExecResult

BASE = "https://github.com/Azure/bicep/releases/download/v0.24.24/"


@pytest.mark.parametrize(
    "system, machine, binary, asset",
    [
        ("Windows", "AMD64", "bicep.exe", "bicep-win-x64.exe"),
        ("Darwin", "arm64", "bicep", "bicep-osx-arm64"),
        ("Darwin", "x86_64", "bicep", "bicep-osx-x64"),
        ("Linux", "aarch64", "bicep", "bicep-linux-arm64"),
        ("Linux", "armv7l", "bicep", "bicep-linux-arm"),
        ("Linux", "x86_64", "bicep", "bicep-linux-x64"),
    ],
)
def test_platform_info(system, machine, binary, asset) -> None:
    assert bicep_platform_info(system, machine) == (binary, BASE + asset)


def test_unsupported_platform() -> None:
    with pytest.raises(BicepInstallError, match="Unsupported platform"):
        bicep_platform_info("SunOS", "sparc")


async def test_ensure_requires_runner_temp() -> None:
    with pytest.raises(BicepInstallError, match="RUNNER_TEMP"):
        await ensure_bicep_cli(None)


async def test_ensure_downloads_following_redirects(tmp_path) -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        if request.url.host == "github.com":
            return httpx.Response(302, headers={"Location": "https://objects.example/bicep"})
        return httpx.Response(200, content=b"#!binary")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        path = await ensure_bicep_cli(
            str(tmp_path), client=client, system="Linux", machine="x86_64"
        )

    assert path == str(tmp_path / "bicep")
    assert (tmp_path / "bicep").read_bytes() == b"#!binary"
    assert seen == [BASE + "bicep-linux-x64", "https://objects.example/bicep"]
    if os.name != "nt":
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o755


async def test_ensure_uses_cached_binary(tmp_path) -> None:
    (tmp_path / "bicep").write_bytes(b"cached")

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no download expected")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        path = await ensure_bicep_cli(
            str(tmp_path), client=client, system="Linux", machine="x86_64"
        )
    assert path == str(tmp_path / "bicep")
    assert (tmp_path / "bicep").read_bytes() == b"cached"


async def test_ensure_download_failure_leaves_no_file(tmp_path) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(BicepInstallError, match="Failed to download Bicep CLI"):
            await ensure_bicep_cli(
                str(tmp_path), client=client, system="Linux", machine="x86_64"
            )
    assert not (tmp_path / "bicep").exists()


def _fake_exec(monkeypatch, result=None, error=None):
    calls = []

    async def fake(command, args=(), **kwargs):
        calls.append([command, *args])
        if error is not None:
            raise error
        return result

    monkeypatch.setattr(bicep, "execute_command", fake)
    return calls


async def test_compile_success(monkeypatch) -> None:
    calls = _fake_exec(monkeypatch, ExecResult(json.dumps({"resources": []}), "", 0))
    result = await compile_bicep_file("/opt/bicep", "infra/main.bicep")
    assert result == CompilationResult("infra/main.bicep", True, {"resources": []}, None)
    assert calls == [["/opt/bicep", "build", "infra/main.bicep", "--stdout"]]


async def test_compile_stderr_is_failure_even_on_zero_exit(monkeypatch) -> None:
    _fake_exec(monkeypatch, ExecResult("{}", "Warning BCP081: something", 0))
    result = await compile_bicep_file("bicep", "a.bicep")
    assert not result.success
    assert result.error == "Warning BCP081: something"


async def test_compile_non_zero_exit_without_stderr(monkeypatch) -> None:
    _fake_exec(monkeypatch, ExecResult("", "", 1))
    result = await compile_bicep_file("bicep", "a.bicep")
    assert result.error == "Unknown compilation error"


async def test_compile_bad_json(monkeypatch) -> None:
    _fake_exec(monkeypatch, ExecResult("not json", "", 0))
    result = await compile_bicep_file("bicep", "a.bicep")
    assert not result.success
    assert result.error.startswith("Failed to parse ARM template:")


async def test_compile_exec_error_never_raises(monkeypatch) -> None:
    _fake_exec(monkeypatch, error=ExecError("Command timed out after 60s: bicep"))
    result = await compile_bicep_file("bicep", "a.bicep")
    assert not result.success
    assert "timed out" in result.error


async def test_compile_files_sequential_and_logged(monkeypatch, caplog) -> None:
    outputs = iter(
        [ExecResult('{"resources": []}', "", 0), ExecResult("", "Error BCP018", 1)]
    )

    async def fake(command, args=(), **kwargs):
        return next(outputs)

    monkeypatch.setattr(bicep, "execute_command", fake)
    with caplog.at_level("INFO", logger="iac_reviewer.iac.bicep"):
        results = await compile_bicep_files("bicep", ["a.bicep", "b.bicep"])

    assert [r.success for r in results] == [True, False]
    assert "Compilation complete: 1 succeeded, 1 failed" in caplog.text


def test_format_errors_none_when_all_succeed() -> None:
    assert format_compilation_errors([CompilationResult("a.bicep", True, {})]) is None


def test_format_errors_short_inline_long_collapsible() -> None:
    long_error = "E" * 501
    text = format_compilation_errors(
        [
            CompilationResult("ok.bicep", True, {}),
            CompilationResult("short.bicep", False, error="Error BCP018"),
            CompilationResult("long.bicep", False, error=long_error),
            CompilationResult("none.bicep", False),
        ]
    )
    assert text is not None
    assert text.startswith("## Bicep Compilation Errors\n\nFound 3 file(s) with compilation errors:")
    assert "### `short.bicep`\n\n```\nError BCP018\n```" in text
    assert "<summary>⚠️ Error Details (501 chars)</summary>" in text
    assert "Unknown error" in text
    assert "ok.bicep" not in text

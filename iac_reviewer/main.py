# iac_reviewer/main.py
"""
Entry point for the pull request review step.

``run`` (default) performs the full review inside a GitHub Actions job.
``inspect <arm.json>`` extracts and sanitizes a local compiled template and
prints exactly what would be eligible for transmission, for local debugging
of the privacy layer.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import httpx
from pydantic import ValidationError

from iac_reviewer import __version__
from iac_reviewer.config import Settings, get_settings
from iac_reviewer.errors import ReviewerError
from iac_reviewer.format.markdown import format_pr_comment
from iac_reviewer.github.comments import create_or_update_comment
from iac_reviewer.github.context import build_call_context, create_client, parse_pr_context
from iac_reviewer.github.pr_files import list_bicep_files_with_status
from iac_reviewer.iac.bicep import compile_bicep_files, ensure_bicep_cli, format_compilation_errors
from iac_reviewer.iac.extract import extract_resource_metadata, extract_resources
from iac_reviewer.iac.sanitize import sanitize_resources, sanitize_resources_with_changes
from iac_reviewer.iac.validate import validate_no_sensitive_data
from iac_reviewer.models.resources import ChangeType, ResourceMetadata
from iac_reviewer.services.analyzer import analyze_resources
from iac_reviewer.telemetry.logging import bind, configure_root_logging
from iac_reviewer.telemetry.metrics import (
    inc_fields_removed,
    inc_resources_sanitized,
    write_textfile,
)

log = logging.getLogger(__name__)


@dataclass
class ReviewSummary:
    resources_detected: int
    analysis_status: str
    source: Optional[str] = None


def write_outputs(path: Optional[str], outputs: Dict[str, str]) -> None:
    """Append step outputs to the ``GITHUB_OUTPUT`` file."""
    if not path:
        log.debug("GITHUB_OUTPUT not set, skipping step outputs")
        return
    with open(path, "a", encoding="utf-8") as fh:
        for name, value in outputs.items():
            fh.write(f"{name}={value}\n")


def _finish(settings: Settings, summary: ReviewSummary) -> ReviewSummary:
    write_outputs(
        settings.github_output,
        {
            "resources_detected": str(summary.resources_detected),
            "analysis_status": summary.analysis_status,
        },
    )
    return summary


async def run_review(
    settings: Settings,
    *,
    github_client: Optional[httpx.AsyncClient] = None,
    backend_client: Optional[httpx.AsyncClient] = None,
) -> ReviewSummary:
    log.info("Azure IaC Reviewer started")

    ctx = parse_pr_context(settings.github_event_path, settings.github_event_name)
    own_client = github_client is None
    client = github_client or create_client(settings.github_token, settings.github_api_url)
    plog = bind(log, pr_number=ctx.pr_number, repository=ctx.full_name)

    try:
        plog.info("Processing PR #%d in %s", ctx.pr_number, ctx.full_name)

        changed = await list_bicep_files_with_status(client, ctx)
        if not changed:
            plog.info("No .bicep files to analyze. Exiting successfully.")
            return _finish(settings, ReviewSummary(0, "skipped"))

        change_by_file: Dict[str, ChangeType] = {f.filename: f.change for f in changed}
        # A removed file no longer exists in the checkout.
        to_compile = [f.filename for f in changed if f.change != "removed"]
        if not to_compile:
            plog.info("All changed .bicep files were removed. Nothing to compile.")
            return _finish(settings, ReviewSummary(0, "skipped"))

        plog.info("Found %d .bicep file(s) to analyze", len(to_compile))

        bicep_cli = await ensure_bicep_cli(settings.runner_temp, version=settings.bicep_version)
        results = await compile_bicep_files(
            bicep_cli, to_compile, timeout_s=settings.compile_timeout_s
        )

        compilation_errors = format_compilation_errors(results)
        if compilation_errors:
            # Separate comment so the analysis update does not overwrite it.
            await create_or_update_comment(client, ctx, compilation_errors, "new")
            plog.warning("Some Bicep files failed to compile, but continuing analysis")

        compiled = [r for r in results if r.success and r.arm_template is not None]
        if not compiled:
            plog.warning("No Bicep files compiled successfully. Analysis cannot proceed.")
            return _finish(settings, ReviewSummary(0, "compilation_failed"))

        plog.info("%d file(s) compiled successfully, proceeding with analysis", len(compiled))

        pairs: List[Tuple[ResourceMetadata, ChangeType]] = []
        for result in compiled:
            change = change_by_file.get(result.file_path, "modified")
            try:
                extraction = extract_resources(result.arm_template)
            except ReviewerError as e:
                plog.warning("Failed to extract resources from %s: %s", result.file_path, e)
                continue
            pairs.extend((resource, change) for resource in extraction.resources)
            plog.debug(
                "Extracted %d resource(s) from %s (%s)",
                extraction.resource_count,
                result.file_path,
                change,
            )

        if not pairs:
            plog.info("No resources found in compiled templates. Nothing to analyze.")
            return _finish(settings, ReviewSummary(0, "skipped"))

        plog.info("Total resources detected: %d", len(pairs))

        sanitized = sanitize_resources_with_changes(pairs)
        inc_resources_sanitized(sanitized.resource_count)
        inc_fields_removed(len(sanitized.removed_fields))
        plog.info("Sanitized %d resource(s) for analysis", sanitized.resource_count)

        analysis = await analyze_resources(
            sanitized.resources,
            api_key=settings.api_key,
            server_address=settings.server_address,
            call_context=build_call_context(
                ctx, settings.github_run_id, settings.github_server_url
            ),
            timeout_s=settings.backend_timeout_s,
            client=backend_client,
        )
        plog.info("Analysis completed using %s source", analysis.source)

        await create_or_update_comment(
            client, ctx, format_pr_comment(analysis), settings.comment_mode
        )

        plog.info("Azure IaC Reviewer completed successfully")
        return _finish(settings, ReviewSummary(len(pairs), "success", analysis.source))
    finally:
        if own_client:
            await client.aclose()


def inspect_template(path: str) -> Tuple[dict, bool]:
    """Extract and sanitize a compiled template file; returns (report, valid)."""
    text = Path(path).read_text(encoding="utf-8")
    extraction = extract_resource_metadata(text)
    sanitized = sanitize_resources(extraction.resources)
    verdict = validate_no_sensitive_data(sanitized.resources)
    report = {
        "resource_count": sanitized.resource_count,
        "kinds_detected": extraction.kinds_detected,
        "removed_fields": sanitized.removed_fields,
        "resources": [r.to_payload() for r in sanitized.resources],
        "validation": {"valid": verdict.valid, "violations": verdict.violations},
    }
    return report, verdict.valid


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="iac-reviewer",
        description="Review Azure Bicep changes in a pull request.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", help="override LOG_LEVEL (DEBUG, INFO, ...)")
    parser.add_argument("--log-format", choices=["actions", "json"])
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="review the pull request of the current workflow run")
    inspect = sub.add_parser("inspect", help="sanitize a local compiled ARM template")
    inspect.add_argument("template", help="path to an ARM JSON file")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        configure_root_logging(args.log_level or "INFO", args.log_format or "actions", force=True)
        log.error("Invalid configuration: %s", e)
        return 1

    configure_root_logging(
        args.log_level or settings.log_level,
        args.log_format or settings.log_format,
        force=True,
    )

    if args.command == "inspect":
        try:
            report, valid = inspect_template(args.template)
        except (OSError, ReviewerError) as e:
            log.error("%s", e)
            return 1
        print(json.dumps(report, indent=2))
        return 0 if valid else 2

    try:
        asyncio.run(run_review(settings))
    except Exception as e:  # noqa: BLE001
        # Step failure: error annotation plus non-zero exit.
        log.error("%s", e)
        return 1
    finally:
        write_textfile(settings.metrics_textfile)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

# iac_reviewer/format/markdown.py
from __future__ import annotations

from iac_reviewer import __version__
from iac_reviewer.models.analysis import AnalysisResult

COMMENT_MARKER = "<!-- azure-iac-reviewer -->"
_FOOTER_SEPARATOR = "\n---\n"


def _footer() -> str:
    return (
        f"{_FOOTER_SEPARATOR}<sub>🔍 Analyzed by [ResourcePulse](https://resourcepulse.io)"
        f" • v{__version__}</sub>"
    )


def format_pr_comment(result: AnalysisResult) -> str:
    """Marker line, analysis markdown, attribution footer."""
    return "\n".join([COMMENT_MARKER, result.markdown, _footer()])


def has_marker(comment_body: str) -> bool:
    return COMMENT_MARKER in comment_body


def extract_content(marked_comment: str) -> str:
    """Inverse of :func:`format_pr_comment` for a single marker and footer."""
    content = marked_comment.replace(COMMENT_MARKER, "", 1).strip()
    footer_at = content.rfind(_FOOTER_SEPARATOR)
    if footer_at != -1:
        content = content[:footer_at].strip()
    return content


__all__ = ["COMMENT_MARKER", "format_pr_comment", "has_marker", "extract_content"]

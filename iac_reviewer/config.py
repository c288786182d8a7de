# iac_reviewer/config.py
"""
Runtime configuration for the reviewer step.

GitHub Actions hands action inputs to the process as ``INPUT_<NAME>``
environment variables and passes ``""`` for inputs the workflow did not set.
Every field lists its env names explicitly; blank values count as unset.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import AliasChoices, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from iac_reviewer import __version__

APP_NAME = "azure-iac-reviewer"
APP_VERSION = __version__
DEFAULT_BACKEND_URL = "https://api.resourcepulse.io"
DEFAULT_BICEP_VERSION = "v0.24.24"

CommentMode = Literal["update", "new"]
LogFormat = Literal["actions", "json"]


class Settings(BaseSettings):
    # --- Action inputs ---
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("INPUT_API_KEY", "RESOURCEPULSE_API_KEY"),
    )
    server_address: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("INPUT_SERVER_ADDRESS", "RESOURCEPULSE_SERVER_ADDRESS"),
        description="Override for the remote analysis service base URL",
    )
    comment_mode: CommentMode = Field(
        default="update",
        validation_alias=AliasChoices("INPUT_COMMENT_MODE", "COMMENT_MODE"),
    )

    # --- Workflow environment ---
    github_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("INPUT_GITHUB_TOKEN", "GITHUB_TOKEN"),
    )
    github_event_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("GITHUB_EVENT_PATH")
    )
    github_event_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("GITHUB_EVENT_NAME")
    )
    github_run_id: str = Field(default="", validation_alias=AliasChoices("GITHUB_RUN_ID"))
    github_server_url: str = Field(
        default="https://github.com", validation_alias=AliasChoices("GITHUB_SERVER_URL")
    )
    github_api_url: str = Field(
        default="https://api.github.com", validation_alias=AliasChoices("GITHUB_API_URL")
    )
    github_output: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("GITHUB_OUTPUT")
    )
    runner_temp: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("RUNNER_TEMP")
    )

    # --- Limits ---
    backend_timeout_s: float = Field(
        default=30.0,
        gt=0,
        le=300,
        validation_alias=AliasChoices("INPUT_BACKEND_TIMEOUT_S", "BACKEND_TIMEOUT_S"),
    )
    compile_timeout_s: float = Field(
        default=60.0,
        gt=0,
        validation_alias=AliasChoices("INPUT_COMPILE_TIMEOUT_S", "COMPILE_TIMEOUT_S"),
    )
    bicep_version: str = Field(
        default=DEFAULT_BICEP_VERSION,
        validation_alias=AliasChoices("INPUT_BICEP_VERSION", "BICEP_VERSION"),
    )

    # --- Logging / metrics ---
    log_level: str = Field(
        default="INFO", validation_alias=AliasChoices("INPUT_LOG_LEVEL", "LOG_LEVEL")
    )
    log_format: LogFormat = Field(
        default="actions", validation_alias=AliasChoices("INPUT_LOG_FORMAT", "LOG_FORMAT")
    )
    metrics_textfile: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("INPUT_METRICS_TEXTFILE", "METRICS_TEXTFILE"),
    )

    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator(
        "api_key",
        "server_address",
        "github_token",
        "github_event_path",
        "github_event_name",
        "github_output",
        "runner_temp",
        "metrics_textfile",
        mode="before",
    )
    @classmethod
    def _blank_is_unset(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("comment_mode", "log_format", mode="before")
    @classmethod
    def _normalize_choice(cls, v: Any, info: ValidationInfo) -> Any:
        if isinstance(v, str):
            text = v.strip().lower()
            if not text:
                return "update" if info.field_name == "comment_mode" else "actions"
            return text
        return v

    @field_validator("server_address")
    @classmethod
    def _strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip("/") if v else v

    @property
    def backend_url(self) -> str:
        return self.server_address or DEFAULT_BACKEND_URL


def get_settings() -> Settings:
    return Settings()


__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "DEFAULT_BACKEND_URL",
    "DEFAULT_BICEP_VERSION",
    "CommentMode",
    "LogFormat",
    "Settings",
    "get_settings",
]

# ghaudit/config/settings.py

import re
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import (
    AliasChoices,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ghaudit.application.exceptions import ConfigurationError

OWNER_PATTERN = re.compile(r"[a-zA-Z0-9_-]+")
URL_PATTERN = re.compile(r"https?://[^\s/$.?#].[^\s]*", re.IGNORECASE)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_PACKAGE = "github.repo"


def _is_url(value: str) -> bool:
    return URL_PATTERN.fullmatch(value) is not None


def parse_headers(raw: list[str]) -> dict[str, str]:
    """Parse `Key: Value` header strings. Value may itself contain colons."""
    headers: dict[str, str] = {}
    for item in raw:
        key, sep, value = item.partition(":")
        if not sep or not key.strip():
            raise ValueError(f"invalid HTTP header format: {item!r}")
        headers[key.strip()] = value.strip()
    return headers


class AuditSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GHAUDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # --- Target ---
    owner: str = ""

    # --- GitHub App ---
    app_id: int = 0
    install_id: int = 0
    private_key_file: Path | None = None
    private_key_data: SecretStr | None = None
    api_url: str = DEFAULT_API_URL

    # --- Policy ---
    policy: Path | None = None
    package: str = DEFAULT_PACKAGE
    url: str | None = None
    headers: Annotated[list[str], NoDecode] = Field(default_factory=list)
    opa_binary: str = "opa"

    # --- Runtime ---
    thread: int = Field(1, ge=1)
    limit: int = Field(0, ge=0)
    skip_archived: bool = False
    # GHAUDIT_DUMP / GHAUDIT_LOAD
    dump_dir: Path | None = Field(
        None, validation_alias=AliasChoices("ghaudit_dump", "ghaudit_dump_dir")
    )
    load_dir: Path | None = Field(
        None, validation_alias=AliasChoices("ghaudit_load", "ghaudit_load_dir")
    )

    # --- Reporting ---
    slack_webhook: SecretStr | None = None
    fail: bool = False

    # --- Logging ---
    log_level: Literal["trace", "debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"

    @field_validator("headers", mode="before")
    @classmethod
    def _split_headers(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [v for v in value.split(",") if v.strip()]
        return value

    @field_validator("log_level", "log_format", mode="before")
    @classmethod
    def _lower(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _validate_sources(self) -> "AuditSettings":
        if self.load_dir is None:
            if not OWNER_PATTERN.fullmatch(self.owner):
                raise ValueError("owner is required and must match [a-zA-Z0-9_-]+")
            if self.app_id < 1:
                raise ValueError("app_id is required")
            if self.install_id < 1:
                raise ValueError("install_id is required")
            if (self.private_key_file is None) == (self.private_key_data is None):
                raise ValueError("either one of private key file or data is required")

        if self.policy is None and not self.url:
            raise ValueError("either one of policy dir or OPA server URL is required")
        if self.url and not _is_url(self.url):
            raise ValueError(f"url is not a valid URL: {self.url}")
        if self.slack_webhook and not _is_url(self.slack_webhook.get_secret_value()):
            raise ValueError("slack_webhook is not a valid URL")
        parse_headers(self.headers)
        return self

    @property
    def header_map(self) -> dict[str, str]:
        return parse_headers(self.headers)

    def private_key(self) -> bytes:
        """Return PEM bytes from inline data or from the key file."""
        if self.private_key_data is not None:
            return self.private_key_data.get_secret_value().encode("utf-8")
        if self.private_key_file is None:
            raise ConfigurationError("no GitHub App private key configured")
        try:
            return self.private_key_file.read_bytes()
        except OSError as e:
            raise ConfigurationError(
                "failed to read private key file", path=str(self.private_key_file)
            ) from e


def load_settings(**overrides: Any) -> AuditSettings:
    """
    Build settings from GHAUDIT_* environment (and .env), overridden by explicit values.
    Validated once; any failure is a ConfigurationError.
    """
    try:
        return AuditSettings(**overrides)
    except ValidationError as e:
        details = "; ".join(err["msg"] for err in e.errors())
        raise ConfigurationError(f"invalid config: {details}") from e

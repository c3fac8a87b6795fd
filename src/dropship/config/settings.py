"""
Typed application settings built from a loaded Config.

`AppSettings.from_config` never raises on bad values: conversion problems
are recorded and reported, together with every semantic problem, by
`AppSettings.validate()` as a single ConfigurationError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dropship.config.loader import Config
from dropship.config.resolver import unresolved_variables
from dropship.connections.sftp import SFTPConfig
from dropship.encoding.spec import FieldSpec, FormatSpec
from dropship.exceptions import ConfigurationError
from dropship.files.naming import DEFAULT_TIMESTAMP_FORMAT, NamingPolicy
from dropship.retry.policy import DEFAULT_MAX_DELAY, BackoffPolicy
from dropship.transfer.diagnostics import validate_sftp_settings
from dropship.utils.logging import LEVEL_MAP

SOURCE_TYPES = ("memory", "duckdb")
CONSOLE_TYPES = ("rich", "plain")


class _Reader:
    """Typed access to one config section that records conversion errors."""

    def __init__(self, section: str, data: dict[str, Any], issues: list[str]):
        self.section = section
        self.data = data
        self.issues = issues

    def _convert(self, key: str, default: Any, kind: type, label: str) -> Any:
        value = self.data.get(key)
        if value is None or value == "":
            return default
        try:
            return kind(value)
        except (TypeError, ValueError):
            self.issues.append(f"{self.section}.{key} must be {label} (got {value!r})")
            return default

    def text(self, key: str, default: str | None = None) -> str | None:
        value = self.data.get(key)
        return default if value is None else str(value)

    def integer(self, key: str, default: int | None) -> int | None:
        return self._convert(key, default, int, "an integer")

    def number(self, key: str, default: float | None) -> float | None:
        return self._convert(key, default, float, "a number")

    def flag(self, key: str, default: bool) -> bool:
        value = self.data.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in ("true", "yes", "on", "1"):
            return True
        if text in ("false", "no", "off", "0"):
            return False
        self.issues.append(f"{self.section}.{key} must be true or false (got {value!r})")
        return default


@dataclass(frozen=True)
class GeneralSettings:
    interval_s: float = 60.0


@dataclass(frozen=True)
class FileSettings:
    staging_dir: Path = Path("outgoing")
    archive_dir: Path = Path("archive")
    prefix: str = "upload_"
    suffix: str = ".txt"
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT
    encoding: str = "utf-8"
    auto_archive: bool = True
    retention_days: int | None = 30

    def naming_policy(self) -> NamingPolicy:
        return NamingPolicy(prefix=self.prefix, suffix=self.suffix, timestamp_format=self.timestamp_format)


@dataclass(frozen=True)
class RetrySettings:
    max_retries: int = 3
    initial_delay_s: float = 5.0
    max_delay_s: float = DEFAULT_MAX_DELAY
    reset_per_file: bool = False

    def backoff_policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            max_retries=self.max_retries,
            initial_delay=self.initial_delay_s,
            max_delay=self.max_delay_s,
            reset_per_file=self.reset_per_file,
        )


@dataclass(frozen=True)
class SourceSettings:
    type: str = "memory"
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    file: str | None = "logs/dropship.log"
    console_enabled: bool = True
    console_type: str = "rich"


@dataclass(frozen=True)
class AppSettings:
    """Every section of the configuration, typed."""

    general: GeneralSettings = field(default_factory=GeneralSettings)
    sftp: SFTPConfig = field(default_factory=lambda: SFTPConfig(host=""))
    files: FileSettings = field(default_factory=FileSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    message: FormatSpec = field(default_factory=FormatSpec)
    source: SourceSettings = field(default_factory=SourceSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    # Conversion problems found while reading the raw config
    parse_issues: tuple[str, ...] = ()
    # (setting path, variable) for ${VAR} references whose variable is unset
    unresolved: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_config(cls, config: Config) -> AppSettings:
        issues: list[str] = []
        base_dir = config.base_dir

        general = _Reader("general", config.section("general"), issues)
        sftp = _Reader("sftp", config.section("sftp"), issues)
        files = _Reader("files", config.section("files"), issues)
        retry = _Reader("retry", config.section("retry"), issues)
        log = _Reader("logging", config.section("logging"), issues)

        source_data = dict(config.section("source"))
        source_type = str(source_data.pop("type", "memory") or "memory").lower()

        return cls(
            general=GeneralSettings(interval_s=general.number("interval_s", 60.0)),
            sftp=SFTPConfig(
                host=sftp.text("host", ""),
                port=sftp.integer("port", 22),
                username=sftp.text("username"),
                password=sftp.text("password"),
                private_key_path=sftp.text("private_key_path"),
                private_key_passphrase=sftp.text("private_key_passphrase"),
                remote_directory=sftp.text("remote_directory", "/"),
                connect_timeout_s=sftp.number("connect_timeout_s", 15.0),
            ),
            files=FileSettings(
                staging_dir=base_dir / files.text("staging_dir", "outgoing"),
                archive_dir=base_dir / files.text("archive_dir", "archive"),
                prefix=files.text("prefix", "upload_"),
                suffix=files.text("suffix", ".txt"),
                timestamp_format=files.text("timestamp_format", DEFAULT_TIMESTAMP_FORMAT),
                encoding=files.text("encoding", "utf-8"),
                auto_archive=files.flag("auto_archive", True),
                retention_days=files.integer("retention_days", 30),
            ),
            retry=RetrySettings(
                max_retries=retry.integer("max_retries", 3),
                initial_delay_s=retry.number("initial_delay_s", 5.0),
                max_delay_s=retry.number("max_delay_s", DEFAULT_MAX_DELAY),
                reset_per_file=retry.flag("reset_per_file", False),
            ),
            message=_read_message(config.section("message"), issues),
            source=SourceSettings(type=source_type, options=source_data),
            logging=LoggingSettings(
                level=str(log.text("level", "INFO")).upper(),
                file=log.text("file", "logs/dropship.log"),
                console_enabled=log.flag("console_enabled", True),
                console_type=str(log.text("console_type", "rich")).lower(),
            ),
            parse_issues=tuple(issues),
            unresolved=tuple(unresolved_variables(config.data)),
        )

    def collect_issues(self, require_sftp: bool = True) -> list[str]:
        """Every problem with these settings; nothing is touched on disk or network."""
        issues = list(self.parse_issues)
        for path, name in self.unresolved:
            if require_sftp or not path.startswith("sftp."):
                issues.append(f"{path} references unset environment variable {name}")

        if self.general.interval_s <= 0:
            issues.append(f"general.interval_s must be > 0 (got {self.general.interval_s})")

        if require_sftp:
            issues.extend(validate_sftp_settings(self.sftp))
        if self.sftp.connect_timeout_s <= 0:
            issues.append("sftp.connect_timeout_s must be > 0")

        f = self.files
        if f.staging_dir == f.archive_dir:
            issues.append("files.staging_dir and files.archive_dir must differ")
        if f.retention_days is not None and f.retention_days < 0:
            issues.append(f"files.retention_days must be >= 0 (got {f.retention_days})")
        try:
            "".encode(f.encoding)
        except LookupError:
            issues.append(f"files.encoding is not a known codec: '{f.encoding}'")

        r = self.retry
        if r.max_retries < 0:
            issues.append(f"retry.max_retries must be >= 0 (got {r.max_retries})")
        if r.initial_delay_s < 0:
            issues.append(f"retry.initial_delay_s must be >= 0 (got {r.initial_delay_s})")
        if r.max_delay_s < 0:
            issues.append(f"retry.max_delay_s must be >= 0 (got {r.max_delay_s})")

        if not self.message.fields:
            issues.append("message.fields must define at least one field")
        for item in self.message.fields:
            if item.is_custom and item.custom_value is None:
                issues.append(f"message field at position {item.position} is Custom but has no custom_value")

        if self.source.type not in SOURCE_TYPES:
            issues.append(f"source.type must be one of {', '.join(SOURCE_TYPES)} (got '{self.source.type}')")

        if self.logging.level not in LEVEL_MAP:
            issues.append(f"logging.level must be one of {', '.join(LEVEL_MAP)} (got '{self.logging.level}')")
        if self.logging.console_type not in CONSOLE_TYPES:
            issues.append(f"logging.console_type must be one of {', '.join(CONSOLE_TYPES)}")
        return issues

    def validate(self, require_sftp: bool = True) -> None:
        """
        Raises:
            ConfigurationError: With every issue found, if any
        """
        issues = self.collect_issues(require_sftp=require_sftp)
        if issues:
            raise ConfigurationError(issues)


def _read_message(data: dict[str, Any], issues: list[str]) -> FormatSpec:
    fields = []
    for index, item in enumerate(data.get("fields") or []):
        if not isinstance(item, dict):
            issues.append(f"message.fields[{index}] must be a mapping")
            continue
        try:
            fields.append(FieldSpec.from_dict(item))
        except (TypeError, ValueError) as e:
            issues.append(f"message.fields[{index}]: {e}")
    try:
        return FormatSpec(
            fields=tuple(fields),
            delimiter=data.get("delimiter") or None,
            message_start=data.get("start") or None,
            message_end=data.get("end") or None,
            decimal_separator=str(data.get("decimal_separator") or "."),
        )
    except ValueError as e:
        issues.append(f"message: {e}")
        return FormatSpec(fields=tuple(fields))

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from repo_serializer.config import (
    DEFAULT_CONTENT_FILE,
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_STRUCTURE_FILE,
    MAX_FILE_SIZE,
    MIN_FILE_SIZE,
    Ordering,
)
from repo_serializer.exceptions import ConfigurationError
from repo_serializer.ignore import strip_pattern

# A backslash before a gitignore metacharacter is an escape; any other is a Windows separator.
_GITIGNORE_ESCAPE = re.compile(r"\\([\\#!*?\[\] ]?)")


def _escape_or_separator(m: re.Match[str]) -> str:
    return m.group(0) if m.group(1) else "/"


class Settings(BaseModel):
    """Configuration settings for a serialization run."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True, extra="forbid")

    repo: Path = Field(default_factory=Path.cwd, description="Tree to serialize.")
    output_dir: Path = Field(default_factory=Path.cwd, description="Where outputs are written.")
    structure_file: str = Field(default=DEFAULT_STRUCTURE_FILE, description="Structure output name.")
    content_file: str = Field(default=DEFAULT_CONTENT_FILE, description="Content output name.")
    ignore_patterns: list[str] = Field(
        default_factory=list,
        description="Additional gitignore-syntax patterns.",
    )
    force: bool = Field(default=False, description="Overwrite existing outputs.")
    is_interactive: bool = Field(
        default=False,
        description="Signal PROMPT_REQUIRED instead of failing on existing outputs.",
    )
    max_file_size: int = Field(
        default=DEFAULT_MAX_FILE_SIZE,
        description="Bytes sampled for text classification.",
    )
    no_default_ignores: bool = Field(
        default=False,
        description="Include hidden files and lock files.",
    )
    no_gitignore: bool = Field(default=False, description="Do not read .gitignore files.")
    silent: bool = Field(default=False, description="Suppress informational logging.")
    verbose: bool = Field(default=False, description="Emit per-entry trace logging.")
    hierarchical: bool = Field(
        default=False,
        description="Purely alphabetical content ordering.",
    )
    max_replacement_ratio: float = Field(
        default=0.0,
        description="Tolerated share of U+FFFD characters in a text sample.",
    )
    keep_replacement_chars: bool = Field(
        default=False,
        description="Keep U+FFFD markers in emitted content.",
    )
    log_file: str = Field(default="", description="Log file path.")

    @field_validator("max_file_size")
    @classmethod
    def _check_max_file_size(cls, value: int) -> int:
        if not MIN_FILE_SIZE <= value <= MAX_FILE_SIZE:
            msg = f"max file size must be between {MIN_FILE_SIZE} and {MAX_FILE_SIZE} bytes, got {value}"
            raise ValueError(msg)
        return value

    @field_validator("max_replacement_ratio")
    @classmethod
    def _check_ratio(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            msg = f"max replacement ratio must be between 0 and 1, got {value}"
            raise ValueError(msg)
        return value

    @field_validator("ignore_patterns", mode="before")
    @classmethod
    def _normalize_patterns(cls, value: Any) -> list[str]:  # noqa: ANN401
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        out: list[str] = []
        for pat in value:
            pat2 = strip_pattern(str(pat or ""))
            if pat2:
                out.append(_GITIGNORE_ESCAPE.sub(_escape_or_separator, pat2))
        return out

    @model_validator(mode="after")
    def _check_modes(self) -> Self:
        if self.silent and self.verbose:
            msg = "silent and verbose modes are mutually exclusive"
            raise ValueError(msg)
        return self

    @property
    def structure_path(self) -> Path:
        """Absolute path of the structure output."""
        return (self.output_dir / self.structure_file).resolve()

    @property
    def content_path(self) -> Path:
        """Absolute path of the content output."""
        return (self.output_dir / self.content_file).resolve()

    @property
    def ordering(self) -> Ordering:
        """Content ordering mode."""
        return Ordering.HIERARCHICAL if self.hierarchical else Ordering.DIRECTORIES_FIRST


def build_settings(**options: Any) -> Settings:  # noqa: ANN401
    """Validate raw options into a `Settings` instance.

    Args:
        **options: Settings fields; unknown names are rejected.

    Raises:
        ConfigurationError: if any option is invalid or options conflict.

    Returns:
        Settings: the validated, immutable configuration.
    """
    try:
        return Settings.model_validate(options)
    except ValidationError as e:
        details = "; ".join(_describe_error(err) for err in e.errors())
        raise ConfigurationError(message=f"Invalid configuration: {details}") from e


def _describe_error(err: dict[str, Any]) -> str:
    loc = ".".join(str(x) for x in err.get("loc", ()))
    msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
    return f"{loc}: {msg}" if loc else msg


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML mapping of option names to values.

    Dashes in keys are accepted and mapped to underscores so the file can
    mirror CLI flag names (`max-file-size: 4096`).

    Args:
        path (str | Path): the YAML file to read

    Raises:
        ConfigurationError: if the file cannot be read, parsed, or is not a mapping.

    Returns:
        dict[str, Any]: the options found in the file
    """
    p = Path(path)
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(message=f"Cannot load config file {p}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(message=f"Config file {p} must contain a mapping")
    return {str(k).replace("-", "_"): v for k, v in data.items()}

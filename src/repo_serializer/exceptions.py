from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class RepoSerializerError(Exception):
    """Base exception for errors in the repo_serializer module."""


@dataclass(frozen=True)
class ConfigurationError(RepoSerializerError):
    """Raised when the run configuration is invalid."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class OutputExistsError(RepoSerializerError):
    """Raised when output files already exist and overwriting was not forced."""

    paths: tuple[Path, ...] = field(default_factory=tuple)
    message: str = "Output files already exist. Use force to overwrite."

    def __str__(self) -> str:
        listed = ", ".join(str(p) for p in self.paths)
        return f"{self.message} ({listed})" if listed else self.message


@dataclass(frozen=True)
class PromptRequiredError(OutputExistsError):
    """Raised instead of `OutputExistsError` when the caller can ask the user to confirm."""

    message: str = "PROMPT_REQUIRED"

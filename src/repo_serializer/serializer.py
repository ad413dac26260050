"""Run orchestration: validate, check outputs, render both passes, write."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from repo_serializer.exceptions import ConfigurationError, OutputExistsError, PromptRequiredError
from repo_serializer.file_manipulation import relpath
from repo_serializer.ignore import base_set, literal_pattern
from repo_serializer.logging import logger, set_verbosity, setup_logging
from repo_serializer.output_construction import build_content, build_structure
from repo_serializer.settings import Settings, build_settings


class RenderedOutput(BaseModel):
    """The two rendered artifacts of a run and where they were written."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    structure: str = Field(..., description="Tree listing")
    content: str = Field(..., description="Concatenated file blocks")
    structure_path: Path = Field(..., description="Structure output file")
    content_path: Path = Field(..., description="Content output file")


def resolve_root(settings: Settings) -> Path:
    """Resolve the tree root.

    Raises:
        ConfigurationError: if the root is not an existing directory
    """
    root = settings.repo.resolve()
    if not root.is_dir():
        raise ConfigurationError(message=f"Root directory does not exist or is not a directory: {root}")
    return root


def check_outputs(settings: Settings) -> None:
    """Refuse to run when an output file already exists and `force` is off.

    Args:
        settings (Settings): the run configuration

    Raises:
        PromptRequiredError: if the caller is interactive and may confirm
        OutputExistsError: otherwise
    """
    if settings.force:
        return
    existing = tuple(p for p in (settings.structure_path, settings.content_path) if p.exists())
    if not existing:
        return
    if settings.is_interactive:
        raise PromptRequiredError(paths=existing)
    raise OutputExistsError(paths=existing)


def output_patterns(settings: Settings, root: Path) -> list[str]:
    """Anchored rules hiding the run's own output files when they sit inside `root`."""
    out: list[str] = []
    for p in (settings.structure_path, settings.content_path):
        if p.is_relative_to(root):
            out.append(literal_pattern(relpath(p, root)))
    return out


def stage_file(path: Path, text: str) -> Path:
    """Write `text` to a temporary file beside `path`.

    Args:
        path (Path): the final destination
        text (str): the whole buffer

    Returns:
        Path: the temporary file, to be moved onto `path`
    """
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    return Path(tmp)


def write_atomic(files: dict[Path, str]) -> None:
    """Write several files so that a failure leaves every destination untouched.

    All buffers are staged to temporary files first. Destinations are only
    replaced once every temporary file has been written.

    Args:
        files (dict[Path, str]): destination path to full text
    """
    staged: dict[Path, Path] = {}
    try:
        for path, text in files.items():
            staged[path] = stage_file(path, text)
        for path, tmp in staged.items():
            tmp.replace(path)
    except BaseException:
        for tmp in staged.values():
            tmp.unlink(missing_ok=True)
        raise


def render(settings: Settings) -> tuple[str, str]:
    """Render the structure and content texts without writing anything.

    Args:
        settings (Settings): the run configuration

    Raises:
        ConfigurationError: if the root is not a directory

    Returns:
        tuple[str, str]: the structure text and the content text
    """
    root = resolve_root(settings)
    patterns = base_set(
        settings.ignore_patterns,
        include_defaults=not settings.no_default_ignores,
        extra=output_patterns(settings, root),
    )
    logger.debug("base_patterns", patterns=patterns.patterns)
    read_gitignore = not settings.no_gitignore

    structure = build_structure(root, patterns, root, read_gitignore=read_gitignore)
    content = build_content(
        root,
        patterns,
        root,
        ordering=settings.ordering,
        max_file_size=settings.max_file_size,
        max_replacement_ratio=settings.max_replacement_ratio,
        keep_replacement_chars=settings.keep_replacement_chars,
        read_gitignore=read_gitignore,
    )
    return structure, content


def serialize_repo(settings: Settings | None = None, **options: Any) -> RenderedOutput:  # noqa: ANN401
    """Serialize a directory tree into a structure file and a content file.

    Args:
        settings (Settings | None): a ready configuration; if None, one is
            validated from `options`
        **options: `Settings` fields, used when `settings` is None

    Raises:
        ConfigurationError: invalid options or missing root, before any I/O
        PromptRequiredError: outputs exist, interactive caller, no force
        OutputExistsError: outputs exist, no force

    Returns:
        RenderedOutput: the rendered texts and their destinations
    """
    if settings is None:
        settings = build_settings(**options)
    elif options:
        settings = build_settings(**{**settings.model_dump(), **options})

    if settings.log_file:
        setup_logging(settings.log_file)
    set_verbosity(silent=settings.silent, verbose=settings.verbose)

    resolve_root(settings)
    check_outputs(settings)

    structure_path = settings.structure_path
    content_path = settings.content_path
    # Output directories exist before traversal so that every run sees the same tree.
    structure_path.parent.mkdir(parents=True, exist_ok=True)
    content_path.parent.mkdir(parents=True, exist_ok=True)
    structure, content = render(settings)

    write_atomic({structure_path: structure, content_path: content})

    logger.info("Repository structure written to: %s", structure_path)
    logger.info("Repository contents written to: %s", content_path)
    return RenderedOutput(
        structure=structure,
        content=content,
        structure_path=structure_path,
        content_path=content_path,
    )

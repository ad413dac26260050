"""
repo_serializer — Serialize a directory tree into two readable text files.

Overview
--------
1) **Structure** (`repo_structure.txt`) — a tree listing of the directory,
   directories first, with the usual `├──` / `└──` connectors.

2) **Content** (`repo_content.txt`) — every readable text file, each wrapped
   in `START OF FILE` / `END OF FILE` markers.

Both passes honor the same ignore rules: `.git/` always, hidden entries and
`package-lock.json` unless `--all` is given, `--ignore` patterns, and every
`.gitignore` found along the way (unless `--no-gitignore`).

Usage
-----
Run `repo-serializer --help` for full options. Common examples:
    - Current directory, default outputs:
        repo-serializer

    - Another tree, outputs elsewhere, extra ignores:
        repo-serializer -d ../project -o /tmp/out --ignore "*.csv" "build/"

    - Options from a YAML file (CLI flags still win):
        repo-serializer --config serializer.yaml -v
"""

from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from repo_serializer.config import DEFAULT_CONTENT_FILE, DEFAULT_MAX_FILE_SIZE, DEFAULT_STRUCTURE_FILE, __version__
from repo_serializer.exceptions import ConfigurationError, PromptRequiredError, RepoSerializerError
from repo_serializer.logging import logger
from repo_serializer.serializer import serialize_repo
from repo_serializer.settings import Settings, build_settings, load_config_file

if TYPE_CHECKING:
    from collections.abc import Sequence

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-z]*)\s*$", re.IGNORECASE)

_SIZE_UNITS: dict[str, int] = {
    "": 1,
    "b": 1,
    "k": 1024,
    "kb": 1024,
    "kib": 1024,
    "m": 1024 * 1024,
    "mb": 1024 * 1024,
    "mib": 1024 * 1024,
}

# Config-file keys that mirror CLI flag names rather than settings fields.
_CONFIG_ALIASES: dict[str, str] = {
    "dir": "repo",
    "output": "output_dir",
    "ignore": "ignore_patterns",
    "all": "no_default_ignores",
}


def parse_size(text: str) -> int:
    """Parse a byte size such as `8192`, `8KB`, `1.5MB` or `4MiB`.

    KB and KiB (and MB and MiB) are both taken as powers of 1024.

    Args:
        text (str): the size as typed by the user

    Raises:
        argparse.ArgumentTypeError: if the size cannot be parsed

    Returns:
        int: the size in bytes
    """
    m = _SIZE_PATTERN.match(str(text))
    unit = m.group(2).lower() if m else ""
    if not m or unit not in _SIZE_UNITS:
        msg = f"invalid size: {text!r} (expected e.g. 8192, 8KB, 1.5MB)"
        raise argparse.ArgumentTypeError(msg)
    return int(float(m.group(1)) * _SIZE_UNITS[unit])


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser.

    Returns:
        argparse.ArgumentParser: Configured parser.
    """
    p = argparse.ArgumentParser(
        prog="repo-serializer",
        description="Serialize a repository's structure and contents into readable text files.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-d", "--dir", dest="repo", type=Path, default=Path.cwd(), help="Directory to serialize.")
    p.add_argument(
        "-o",
        "--output",
        dest="output_dir",
        type=Path,
        default=Path.cwd(),
        help="Output directory for generated files.",
    )
    p.add_argument("--structure-file", default=DEFAULT_STRUCTURE_FILE, help="Name of the structure output file.")
    p.add_argument("--content-file", default=DEFAULT_CONTENT_FILE, help="Name of the content output file.")
    p.add_argument(
        "--ignore",
        dest="ignore_patterns",
        nargs="+",
        action="extend",
        default=[],
        help="Additional gitignore-style patterns (repeatable).",
    )
    p.add_argument("-f", "--force", action="store_true", help="Overwrite existing files without asking.")
    p.add_argument(
        "-m",
        "--max-file-size",
        type=parse_size,
        default=DEFAULT_MAX_FILE_SIZE,
        help="Bytes read to decide whether a file is text (512B to 4MB).",
    )
    p.add_argument(
        "-a",
        "--all",
        dest="no_default_ignores",
        action="store_true",
        help="Include hidden files and lock files.",
    )
    p.add_argument("--no-gitignore", action="store_true", help="Do not read .gitignore files.")
    p.add_argument("-s", "--silent", action="store_true", help="Only report warnings and errors.")
    p.add_argument("-v", "--verbose", action="store_true", help="Log every directory and file.")
    p.add_argument(
        "--hierarchical",
        action="store_true",
        help="Order content purely alphabetically instead of directories first.",
    )
    p.add_argument(
        "-r",
        "--max-replacement-ratio",
        type=float,
        default=0.0,
        help="Tolerated share of invalid characters in a text file (0 to 1).",
    )
    p.add_argument(
        "--keep-replacement-chars",
        action="store_true",
        help="Keep U+FFFD markers in the content output.",
    )
    p.add_argument("--config", type=Path, default=None, help="YAML file with default option values.")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    return p


def config_defaults(path: Path) -> dict[str, Any]:
    """Load a YAML config file as parser defaults."""
    values = load_config_file(path)
    defaults = {_CONFIG_ALIASES.get(k, k): v for k, v in values.items()}
    # `--ignore` extends its default, which must therefore be a list.
    patterns = defaults.get("ignore_patterns")
    if patterns is None:
        defaults.pop("ignore_patterns", None)
    elif isinstance(patterns, str):
        defaults["ignore_patterns"] = [patterns]
    elif not isinstance(patterns, list):
        msg = f"Invalid configuration in {path}: 'ignore' must be a pattern or a list of patterns"
        raise ConfigurationError(message=msg)
    return defaults


def parse_args(argv: Sequence[str] | None = None, *, is_interactive: bool = False) -> Settings:
    """Parse CLI arguments into validated settings.

    Args:
        argv (Sequence[str] | None): Optional CLI args.
        is_interactive (bool): whether output collisions may be resolved by prompting.

    Raises:
        ConfigurationError: if the resulting options are invalid.

    Returns:
        Settings: Parsed settings.
    """
    parser = build_parser()
    pre, _ = parser.parse_known_args(argv)
    if pre.config is not None:
        parser.set_defaults(**config_defaults(pre.config))
    options = vars(parser.parse_args(argv))
    options.pop("config", None)
    options["is_interactive"] = is_interactive
    return build_settings(**options)


def confirm_overwrite(paths: Sequence[Path]) -> bool:
    """Ask on stdin whether existing outputs may be overwritten."""
    sys.stderr.write("The following output files already exist:\n")
    for p in paths:
        sys.stderr.write(f"  {p}\n")
    try:
        answer = input("Overwrite? (y/N) ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def main(argv: Sequence[str] | None = None) -> int:
    """Serialize a repository from the command line.

    Args:
        argv (Sequence[str] | None): Optional CLI arguments.

    Returns:
        int: Process exit code.
    """
    try:
        settings = parse_args(argv, is_interactive=sys.stdin.isatty())
        try:
            serialize_repo(settings)
        except PromptRequiredError as e:
            if not confirm_overwrite(e.paths):
                logger.info("Operation cancelled")
                return 0
            serialize_repo(settings.model_copy(update={"force": True}))
    except RepoSerializerError as e:
        logger.error("Error: %s", e)  # noqa: TRY400
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

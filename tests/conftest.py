from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from repo_serializer.logging import set_verbosity

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _default_verbosity() -> None:
    set_verbosity()


@pytest.fixture
def sample_repo(tmp_path: Path) -> Path:
    """A small tree with a root `.gitignore`, one nested file and two ignored files."""
    repo = tmp_path / "sample"
    (repo / "src").mkdir(parents=True)
    (repo / "file1.txt").write_text("A", encoding="utf-8")
    (repo / "src" / "file2.js").write_text("B", encoding="utf-8")
    (repo / ".gitignore").write_text("ignored.txt\n*.log\n", encoding="utf-8")
    (repo / "ignored.txt").write_text("Should not appear", encoding="utf-8")
    (repo / "test.log").write_text("Should not appear", encoding="utf-8")
    return repo

from __future__ import annotations

import secrets
import tempfile
from pathlib import Path

from releaser.platform.files import remove_tree

__all__ = ["ArtifactDir"]


class ArtifactDir:
    """Scratch directories handed between pipeline steps.

    ``get(name)`` returns the same fresh directory for a name for the life of
    the instance. Without an explicit base, a temporary base is created on
    first use and removed by ``cleanup()``.
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        self._base_dir = base_dir
        self._needs_cleanup = False
        self._initialized: set[Path] = set()
        self._random_id = secrets.token_hex(4)

    @property
    def base_dir(self) -> Path:
        if self._base_dir is None:
            self._base_dir = Path(tempfile.mkdtemp(prefix="releaser-"))
            self._needs_cleanup = True
        return self._base_dir

    def get(self, name: str | None = None) -> Path:
        dir_name = f"{name}-{self._random_id}" if name else self._random_id
        path = self.base_dir / dir_name
        if path not in self._initialized:
            self._initialized.add(path)
            remove_tree(path)
            path.mkdir(parents=True)
        return path

    def cleanup(self) -> None:
        if self._needs_cleanup and self._base_dir is not None:
            remove_tree(self._base_dir)
            self._needs_cleanup = False
            self._base_dir = None
            self._initialized.clear()

    def __enter__(self) -> ArtifactDir:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()

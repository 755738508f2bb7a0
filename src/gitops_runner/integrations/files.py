"""Local filesystem operations used by the pipeline core."""

import logging
import os
import re
import shutil
import tempfile
from pathlib import Path

from gitops_runner.errors import InvalidArgument, IOFailure

logger = logging.getLogger(__name__)

_INVALID_FILE_CHARS = re.compile(r"[`~!@#$%^&*()|+=?;:'\",<>{}\[\]\\/]")
_INVALID_DIR_CHARS = re.compile(r"[`~!#$%^&*()|+=?;:'\",<>{}\[\]\\]|/{2,}")


def is_valid_file_name(file_name: str) -> bool:
    """Check that a file name has no shell-significant characters or slashes."""
    if not file_name:
        raise InvalidArgument("file_name must not be empty")
    return _INVALID_FILE_CHARS.search(file_name) is None


def is_valid_directory_name(directory: str | Path) -> bool:
    """Check that a directory path has no shell-significant characters or doubled slashes."""
    directory = str(directory) if directory else ""
    if not directory:
        raise InvalidArgument("directory must not be empty")
    return _INVALID_DIR_CHARS.search(directory) is None


def validate_file_path(path: str | Path) -> Path:
    """Validate both parts of a file path and return it as a Path."""
    path = Path(path)
    if not is_valid_directory_name(path.parent) or not is_valid_file_name(path.name):
        raise InvalidArgument(f"The directory or file name contains invalid characters: {path}")
    return path


class LocalFileStore:
    """Line-oriented file access with atomic replacement on write."""

    def read_lines(self, path: str | Path) -> list[str]:
        """Read non-blank, stripped lines. A missing file reads as empty."""
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise IOFailure(f"Could not read {path}: {e}") from e
        return [line.strip() for line in content.splitlines() if line.strip()]

    def write_lines(self, path: str | Path, lines: list[str]) -> None:
        """Replace the file with one entry per line."""
        path = Path(path)
        content = "".join(f"{line}\n" for line in lines)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise IOFailure(f"Could not write {path}: {e}") from e
        logger.debug("Wrote %d line(s) to %s", len(lines), path)

    def exists(self, path: str | Path) -> bool:
        return Path(path).exists()

    def clear_directory(self, path: str | Path) -> None:
        """Delete everything inside a directory, keeping the directory itself."""
        path = Path(path)
        if not is_valid_directory_name(path):
            raise InvalidArgument(f"The directory name contains invalid characters: {path}")
        if not path.exists():
            return
        try:
            for child in path.iterdir():
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()
        except OSError as e:
            raise IOFailure(f"Could not clear {path}: {e}") from e
        logger.info("Cleared the workspace directory %s", path)


def clean_previous_instances(parent_dir: str | Path, current_dir: str | Path) -> list[Path]:
    """Remove sibling job-instance data directories, keeping the current one.

    Returns the directories that were removed.
    """
    parent = Path(parent_dir)
    current = Path(current_dir)
    if not is_valid_directory_name(parent) or not is_valid_directory_name(current):
        raise InvalidArgument("The parent or current workspace path contains invalid characters")
    if not parent.is_dir():
        return []

    current_resolved = current.resolve()
    removed = []
    try:
        for child in sorted(parent.iterdir()):
            if not child.is_dir():
                continue
            if child.resolve() == current_resolved:
                logger.info("Skipping %s since it is used by the current job instance", child)
                continue
            shutil.rmtree(child)
            removed.append(child)
            logger.info("Removed the previous job instance directory %s", child)
    except OSError as e:
        raise IOFailure(f"Could not clean {parent}: {e}") from e
    return removed

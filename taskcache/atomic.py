"""Crash-safe file writes for the local cache directory.

Every cache record and the config file are written by writing a sibling temp
file and renaming it over the target, which is atomic on POSIX. A reader
therefore sees either the old record or the new one, never half of each.

Functions return ``Result`` values; callers decide whether an ``Err`` is fatal.

- Files are created with 0o600 permissions by default
- Parent directories are created with 0o700 permissions
- Temp files are removed when the write fails
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from taskcache.errors import CacheError, Err, Ok, Result

logger = logging.getLogger(__name__)


def atomic_write_text(
    path: Path,
    content: str,
    mode: int = 0o600,
) -> Result[Path, CacheError]:
    """Write ``content`` to ``path`` via temp file + rename.

    Args:
        path: Target file
        content: Text to write (UTF-8)
        mode: Permissions applied to the temp file before the rename

    Returns:
        Ok(path) on success, Err(CacheError) on failure
    """
    path = Path(path)
    temp_path: str | None = None

    try:
        path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)

        # Same directory as the target, otherwise rename is not atomic
        fd, temp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.stem[:40]}_",
            suffix=".tmp",
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(temp_path, mode)
        os.replace(temp_path, path)
        temp_path = None

        logger.debug(f"Atomic write complete: {path}")
        return Ok(path)

    except PermissionError as e:
        logger.error(f"Permission denied writing {path}: {e}")
        _cleanup_temp(temp_path)
        return Err(
            CacheError(
                code="ATOMIC_PERMISSION_DENIED",
                message=f"Permission denied writing to {path}",
                context={"path": str(path)},
            )
        )

    except OSError as e:
        # Disk full lands here (ENOSPC), which is the local "quota exceeded"
        logger.error(f"OS error writing {path}: {e}")
        _cleanup_temp(temp_path)
        return Err(
            CacheError(
                code="ATOMIC_WRITE_FAILED",
                message=f"Failed to write {path}: {e}",
                context={"path": str(path), "error": str(e)},
            )
        )


def atomic_write_yaml(
    path: Path,
    data: Any,
    mode: int = 0o600,
) -> Result[Path, CacheError]:
    """Serialize ``data`` with ``yaml.safe_dump`` and write it atomically."""
    try:
        content = yaml.safe_dump(
            data,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
    except yaml.YAMLError as e:
        logger.error(f"YAML serialization failed: {e}")
        return Err(
            CacheError(
                code="YAML_SERIALIZATION_FAILED",
                message=f"Failed to serialize data to YAML: {e}",
                context={"error": str(e)},
            )
        )

    return atomic_write_text(path, content, mode)


def _cleanup_temp(temp_path: str | None) -> None:
    if temp_path is None:
        return

    try:
        os.unlink(temp_path)
        logger.debug(f"Cleaned up temp file: {temp_path}")
    except OSError:
        # Already gone
        pass

"""Task document naming.

New task documents live at ``{folder}/{YYYY-MM-DD}-{slug}.md``. When that
path is taken, the resolver tries ``-1``, ``-2``, … inserted before the
extension, always relative to the original base path.
"""

import posixpath
import re
from datetime import UTC, date, datetime

from taskcache.types import DocumentPath

SLUG_MAX_LENGTH = 50
DEFAULT_SLUG = "untitled"
DATE_STAMP = re.compile(r"\d{4}-\d{2}-\d{2}")


def slugify(title: str) -> str:
    """Lowercase, hyphen-separated ASCII slug of ``title``, at most 50 chars."""
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    slug = slug.strip("-")[:SLUG_MAX_LENGTH].strip("-")
    return slug or DEFAULT_SLUG


def today_stamp() -> str:
    return datetime.now(UTC).date().isoformat()


def task_path(folder: str, title: str, day: date | str | None = None) -> DocumentPath:
    """Base path for a new task titled ``title``.

    Raises:
        ValueError: ``day`` is a string that is not YYYY-MM-DD
    """
    if day is None:
        stamp = today_stamp()
    elif isinstance(day, date):
        stamp = day.isoformat()
    else:
        if not DATE_STAMP.fullmatch(day):
            raise ValueError(f"Date must be YYYY-MM-DD, got {day!r}")
        stamp = day

    filename = f"{stamp}-{slugify(title)}.md"
    folder = folder.strip("/")
    return DocumentPath(f"{folder}/{filename}" if folder else filename)


def candidate_path(base_path: str, attempt: int) -> DocumentPath:
    """The ``attempt``-th candidate for ``base_path``; attempt 0 is the base itself."""
    if attempt == 0:
        return DocumentPath(base_path)
    stem, ext = posixpath.splitext(base_path)
    return DocumentPath(f"{stem}-{attempt}{ext}")


def date_stamp_of(path: str) -> str | None:
    """Date stamp embedded in a task filename, if any."""
    match = DATE_STAMP.search(posixpath.basename(path))
    return match.group() if match else None

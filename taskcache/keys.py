"""Storage key schema.

Every writer to the shared KV store builds its key here so that entity types
can never collide. Layout::

    draft:{task_identity}:{path}
    checkpoints:{task_identity}
    chat:{task_identity}:{path}

Components are percent-encoded (``/`` kept readable), so a ``:`` inside an
identity or path cannot make two different inputs produce the same key.
"""

from urllib.parse import quote, unquote

DRAFT = "draft"
CHECKPOINTS = "checkpoints"
CHAT = "chat"

KINDS = (DRAFT, CHECKPOINTS, CHAT)


def _enc(part: str) -> str:
    return quote(part, safe="/")


def draft_key(task_identity: str, path: str) -> str:
    return f"{DRAFT}:{_enc(task_identity)}:{_enc(path)}"


def checkpoint_key(task_identity: str) -> str:
    return f"{CHECKPOINTS}:{_enc(task_identity)}"


def chat_key(task_identity: str, path: str) -> str:
    return f"{CHAT}:{_enc(task_identity)}:{_enc(path)}"


def prefix_for(kind: str) -> str:
    """Key prefix shared by all keys of ``kind``."""
    if kind not in KINDS:
        raise ValueError(f"Unknown key kind: {kind}")
    return f"{kind}:"


def parse_key(key: str) -> tuple[str, tuple[str, ...]] | None:
    """Split a key back into ``(kind, decoded parts)``.

    Returns None for keys not produced by this module.
    """
    kind, sep, rest = key.partition(":")
    if not sep or kind not in KINDS or not rest:
        return None
    parts = tuple(unquote(p) for p in rest.split(":"))
    expected = 1 if kind == CHECKPOINTS else 2
    if len(parts) != expected:
        return None
    return kind, parts

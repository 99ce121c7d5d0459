"""Identifier helpers: slugs for forms, fields and roles, and member IDs."""

import re
import secrets
from typing import Iterable

_NON_SLUG = re.compile(r"[^a-z0-9]")
_WHITESPACE = re.compile(r"\s+")

MEMBER_ID_PREFIX = "DM-"


def slugify(text: str) -> str:
    """Lower-case ``text`` and replace every non-alphanumeric char with ``-``."""
    return _NON_SLUG.sub("-", text.strip().lower())


def role_slug(name: str) -> str:
    """Role ids only collapse whitespace, so ``"Event Host"`` -> ``event-host``."""
    return _WHITESPACE.sub("-", name.strip().lower())


def is_meaningful_slug(slug: str) -> bool:
    return any(ch.isalnum() for ch in slug)


def generate_member_id(existing: Iterable[str] = ()) -> str:
    """Return a ``DM-`` prefixed six digit ID not present in ``existing``."""
    taken = set(existing)
    while True:
        candidate = f"{MEMBER_ID_PREFIX}{secrets.randbelow(1_000_000):06d}"
        if candidate not in taken:
            return candidate

"""Versioned migrations for the four persisted documents.

Documents are stored as ``{"schema_version": N, "data": ...}``.  A bare
list or dict (or a JSON string of one) is treated as version 1, the
camelCase layout written by the original browser client.  Version 2 is
snake_case with hashed passwords and an explicit site-wide
``application_status``.

``migrate_document`` raises ``ValueError`` for anything it cannot read;
the repository turns that into the document's default value.
"""

import copy
import json
import logging
import re
from typing import Any, Callable, Dict, Tuple

from portal.auth import hash_password, looks_hashed

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = 2

DOCUMENT_KINDS = ("users", "applications", "settings", "chats")

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")

# Keys whose values are user-keyed maps; their own keys are field ids
_OPAQUE_KEYS = {"responses"}


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", name).lower()


def snake_keys(value: Any) -> Any:
    """Recursively convert dict keys to snake_case, leaving opaque maps alone."""
    if isinstance(value, list):
        return [snake_keys(item) for item in value]
    if isinstance(value, dict):
        converted = {}
        for key, item in value.items():
            new_key = camel_to_snake(key) if isinstance(key, str) else key
            converted[new_key] = item if new_key in _OPAQUE_KEYS else snake_keys(item)
        return converted
    return value


def wrap(data: Any, version: int = CURRENT_SCHEMA_VERSION) -> Dict[str, Any]:
    return {"schema_version": version, "data": data}


def unwrap(raw: Any) -> Tuple[int, Any]:
    """Split a stored value into ``(version, payload)``."""
    if isinstance(raw, (str, bytes)):
        raw = json.loads(raw)
    if isinstance(raw, dict) and "schema_version" in raw and "data" in raw:
        version = raw["schema_version"]
        if not isinstance(version, int) or version < 1:
            raise ValueError(f"Invalid schema_version: {version!r}")
        return version, raw["data"]
    return 1, raw


# ---------------------------------------------------------------------------
# v1 -> v2
# ---------------------------------------------------------------------------


def _expect(payload: Any, kind: str, expected: type) -> None:
    if not isinstance(payload, expected):
        raise ValueError(f"{kind} document must be a {expected.__name__}, got {type(payload).__name__}")


def _users_v1_to_v2(payload: Any) -> Any:
    _expect(payload, "users", list)
    users = snake_keys(payload)
    for user in users:
        _expect(user, "user record", dict)
        if isinstance(user.get("email"), str):
            user["email"] = user["email"].strip().lower() or None
        password = user.pop("password", None)
        if password and not user.get("hashed_password"):
            user["hashed_password"] = password if looks_hashed(password) else hash_password(password)
    return users


def _applications_v1_to_v2(payload: Any) -> Any:
    _expect(payload, "applications", list)
    return snake_keys(payload)


def _chats_v1_to_v2(payload: Any) -> Any:
    _expect(payload, "chats", list)
    return snake_keys(payload)


def _settings_v1_to_v2(payload: Any) -> Any:
    _expect(payload, "settings", dict)
    settings = snake_keys(payload)

    # Missing status is derived from the older boolean flag
    if not settings.get("application_status"):
        settings["application_status"] = "closed" if settings.get("applications_open") is False else "open"
    settings["applications_open"] = settings["application_status"] in ("open", "ending_soon")

    # Single field list from before multi-form support becomes member-app's fields
    legacy_fields = settings.pop("app_fields", None)
    if legacy_fields and not settings.get("app_forms"):
        from portal.models.forms import PROTECTED_FORM_ID, default_app_forms

        forms = [form.model_dump(mode="json") for form in default_app_forms()]
        for form in forms:
            if form["id"] == PROTECTED_FORM_ID:
                form["fields"] = legacy_fields
        settings["app_forms"] = forms

    # Null entries would otherwise fail validation instead of defaulting
    return {key: value for key, value in settings.items() if value is not None}


_UPGRADES: Dict[str, Dict[int, Callable[[Any], Any]]] = {
    "users": {1: _users_v1_to_v2},
    "applications": {1: _applications_v1_to_v2},
    "settings": {1: _settings_v1_to_v2},
    "chats": {1: _chats_v1_to_v2},
}


def migrate_document(kind: str, raw: Any) -> Any:
    """Upgrade a stored document of ``kind`` to the current schema.

    Returns the payload (not the envelope).  Raises ``ValueError`` when the
    value cannot be parsed or comes from a newer schema than this code knows.
    """
    if kind not in _UPGRADES:
        raise ValueError(f"Unknown document kind: {kind}")

    version, payload = unwrap(raw)
    if version > CURRENT_SCHEMA_VERSION:
        raise ValueError(f"{kind} document has schema_version {version}, newer than {CURRENT_SCHEMA_VERSION}")

    payload = copy.deepcopy(payload)
    while version < CURRENT_SCHEMA_VERSION:
        upgrade = _UPGRADES[kind].get(version)
        if upgrade is None:
            raise ValueError(f"No migration for {kind} from version {version}")
        logger.info("Migrating %s document from schema v%d to v%d", kind, version, version + 1)
        payload = upgrade(payload)
        version += 1
    return payload

"""
External identifiers of the form "<KindName>#<key>".
"""

import hashlib
from typing import Any, List, Sequence, Tuple, Union

from shared.errors import InvalidIdentifier

SEPARATOR = "#"
KEY_SEPARATOR = "-"
DIGEST_LENGTH = 10


def hash_key(key: Union[str, int, Sequence[Any]]) -> str:
    """Digest a record key; multi-part keys are joined with '-' first."""
    if isinstance(key, (list, tuple)):
        key = KEY_SEPARATOR.join(str(part) for part in key)

    if key is None or key == "" or isinstance(key, bool):
        raise InvalidIdentifier("Cannot generate an ID for an empty object")

    return hashlib.sha1(str(key).encode("utf-8")).hexdigest()[:DIGEST_LENGTH]


def compose_external_id(kind_name: str, key: Union[str, int, Sequence[Any]]) -> str:
    """Build '<kind_name>#<sha1 prefix of key>'."""
    if not kind_name or SEPARATOR in kind_name:
        raise InvalidIdentifier(f"Invalid kind name: {kind_name!r}")
    return f"{kind_name}{SEPARATOR}{hash_key(key)}"


def split_external_id(external_id: str) -> Tuple[str, List[str]]:
    """Split an external id into its kind name and key parts."""
    if not isinstance(external_id, str):
        raise InvalidIdentifier(f"Invalid external ID: {external_id!r}")

    parts = external_id.split(SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidIdentifier(f"Invalid external ID: {external_id}")

    kind_name, key = parts
    return kind_name, key.split(KEY_SEPARATOR)

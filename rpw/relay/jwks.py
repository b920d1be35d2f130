"""Public key set publication with content-hash cache validation."""

import hashlib
import json
from base64 import urlsafe_b64encode

from rpw.crypto.types import PublicKeySet


def canonical_json(key_set: PublicKeySet) -> bytes:
    """Serialise a key set deterministically: sorted keys, no whitespace."""
    return json.dumps(
        key_set.model_dump(exclude_none=True),
        sort_keys=True,
        separators=(",", ":"),
    ).encode()


def compute_validator(key_set: PublicKeySet) -> str:
    """Strong entity-tag: quoted base64url SHA-256 of the canonical JSON."""
    digest = hashlib.sha256(canonical_json(key_set)).digest()
    return '"' + urlsafe_b64encode(digest).rstrip(b"=").decode("ascii") + '"'


def _opaque_tag(tag: str) -> str:
    """Strip the weak indicator; quotes are part of the entity-tag."""
    tag = tag.strip()
    if tag.startswith("W/"):
        tag = tag[2:]
    return tag


class KeyPublisher:
    """Serves a fixed key set; body and validator are computed once."""

    def __init__(self, key_set: PublicKeySet, max_age: int) -> None:
        self.body = canonical_json(key_set)
        self.validator = compute_validator(key_set)
        self.cache_control = f"public, max-age={max_age}"

    def is_not_modified(self, if_none_match: str | None) -> bool:
        """True when any entity-tag in ``If-None-Match`` names this key set.

        Weak comparison: a ``W/`` prefix is ignored, but the tag must be the
        quoted validator. ``*`` and unquoted values never match.
        """
        if not if_none_match:
            return False
        return any(
            _opaque_tag(tag) == self.validator for tag in if_none_match.split(",")
        )

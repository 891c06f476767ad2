from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from campuscal.models import FeedEvent


UID_PREFIX = "sap-"
DIGEST_BYTES = 8


def _identity_parts(event: "FeedEvent") -> tuple[str, str, str, str]:
    return (event.title, str(int(event.start)), str(int(event.end)), event.room)


def derive_uid(event: "FeedEvent") -> str:
    """Return the stable identity of ``event``.

    Only title, start, end and room take part; each part is length-prefixed so
    that no two distinct field tuples hash the same byte stream. The result is
    also the UID published in the calendar export.
    """
    hasher = hashlib.sha256()
    for part in _identity_parts(event):
        encoded = part.encode("utf-8")
        hasher.update(str(len(encoded)).encode("ascii"))
        hasher.update(b":")
        hasher.update(encoded)
    return f"{UID_PREFIX}{hasher.digest()[:DIGEST_BYTES].hex()}"

"""
Content hashing for idempotent upserts.

The digest is taken over a canonical JSON encoding (sorted keys, no
insignificant whitespace) so two logically equal records hash the same no
matter how the upstream API ordered their fields.
"""

import hashlib
import json
from typing import Any


def canonical_json(record: Any) -> str:
    return json.dumps(
        record,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def content_hash(record: Any) -> str:
    """SHA-256 hex digest of the record's canonical JSON form"""
    return hashlib.sha256(canonical_json(record).encode("utf-8")).hexdigest()

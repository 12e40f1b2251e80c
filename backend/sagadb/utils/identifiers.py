from __future__ import annotations

import os
import time
import uuid


def generate_uuid7() -> str:
    """
    Generate a time-ordered UUIDv7 string for primary keys.

    Layout: 48-bit Unix timestamp in milliseconds, 4-bit version,
    2-bit variant, remaining bits random.
    """
    ts_ms = int(time.time() * 1000)
    raw = bytearray(ts_ms.to_bytes(6, "big", signed=False) + os.urandom(10))
    raw[6] = (raw[6] & 0x0F) | 0x70
    raw[8] = (raw[8] & 0x3F) | 0x80
    return str(uuid.UUID(bytes=bytes(raw)))

"""
Time-ordered UUIDs for the ``uuid`` identifier strategy.
"""

from __future__ import annotations

import os
import uuid
from time import time_ns


def uuid7() -> uuid.UUID:
    """
    Build a version 7 UUID: 48 bits of Unix milliseconds followed by random bits.

    Values created later sort after earlier ones at millisecond resolution, and
    nothing about the host is encoded.
    """

    millis = time_ns() // 1_000_000
    random_bits = int.from_bytes(os.urandom(10), "big")
    value = (millis & 0xFFFF_FFFF_FFFF) << 80
    value |= 0x7 << 76
    value |= ((random_bits >> 64) & 0xFFF) << 64
    value |= 0b10 << 62
    value |= random_bits & 0x3FFF_FFFF_FFFF_FFFF
    return uuid.UUID(int=value)

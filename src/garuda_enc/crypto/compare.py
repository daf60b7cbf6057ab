"""Constant-time byte comparison."""

from __future__ import annotations


def constant_time_compare(a: bytes, b: bytes) -> bool:
    """Return True if ``a`` and ``b`` are equal.

    Lengths are not secret here, so a length mismatch returns early. For equal
    lengths every byte pair is visited regardless of where they differ.
    """

    if len(a) != len(b):
        return False

    result = 0
    for x, y in zip(a, b):
        result |= x ^ y
    return result == 0

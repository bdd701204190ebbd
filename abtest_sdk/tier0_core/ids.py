"""
abtest_sdk.tier0_core.ids
────────────────────────────
ID generation. Visitor tokens are minted here when a caller arrives without
one; the engine hands them back and never keeps them.
"""
from __future__ import annotations

import uuid


def new_token() -> str:
    """Generate an opaque visitor token (32 hex chars, no dashes)."""
    return uuid.uuid4().hex


__all__ = ["new_token"]

from __future__ import annotations

import uuid


def new_id() -> str:
    """Server-assigned primary key (clients may supply their own UUIDs)."""
    return str(uuid.uuid4())

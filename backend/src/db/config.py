"""Store engine configuration via Pydantic settings."""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field


class StoreSettings(BaseModel):
    echo: bool = False
    # SQLite busy timeout in seconds
    timeout: float = Field(30.0, ge=0)


@lru_cache
def get_settings() -> StoreSettings:
    return StoreSettings(
        echo=os.getenv("ANONYMIZE_DB_ECHO", "false").lower() == "true",
        timeout=float(os.getenv("ANONYMIZE_DB_TIMEOUT", "30")),
    )

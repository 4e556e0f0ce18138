"""Configuration models for the anonymisation run."""

from __future__ import annotations

import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class BlobColumn(BaseModel):
    """A column holding binary media payloads, nulled outright."""

    table: str = Field(..., min_length=1)
    column: str = Field(..., min_length=1)


class AliasTable(BaseModel):
    """Alias rows owned by an entity, anonymised after the entity itself."""

    entity: str = Field(..., min_length=1)
    table: str = Field(..., min_length=1)
    owner_column: str = Field(..., min_length=1)


DEFAULT_BLOB_COLUMNS: tuple[tuple[str, str], ...] = (
    ("tags", "image_blob"),
    ("studios", "image_blob"),
    ("performers", "image_blob"),
    ("scenes", "cover_blob"),
    ("movies", "front_image_blob"),
    ("movies", "back_image_blob"),
)

DEFAULT_BLOB_TABLES: tuple[str, ...] = ("blobs",)

DEFAULT_EXTERNAL_ID_TABLES: tuple[str, ...] = (
    "scene_stash_ids",
    "studio_stash_ids",
    "performer_stash_ids",
)

DEFAULT_ALIAS_TABLES: tuple[tuple[str, str, str], ...] = (
    ("performers", "performer_aliases", "performer_id"),
    ("studios", "studio_aliases", "studio_id"),
    ("tags", "tag_aliases", "tag_id"),
)


class AnonymizeConfig(BaseModel):
    source_path: Path
    output_path: Path

    page_size: int = Field(1000, ge=1)
    log_every: int = Field(10000, ge=1)
    path_separator: str = Field(os.sep, min_length=1)

    blob_columns: list[BlobColumn] = Field(
        default_factory=lambda: [BlobColumn(table=t, column=c) for t, c in DEFAULT_BLOB_COLUMNS]
    )
    blob_tables: list[str] = Field(default_factory=lambda: list(DEFAULT_BLOB_TABLES))
    external_id_tables: list[str] = Field(default_factory=lambda: list(DEFAULT_EXTERNAL_ID_TABLES))
    alias_tables: list[AliasTable] = Field(
        default_factory=lambda: [
            AliasTable(entity=entity, table=table, owner_column=owner)
            for entity, table, owner in DEFAULT_ALIAS_TABLES
        ]
    )

    optimise: bool = True
    verify_row_counts: bool = True

    @field_validator("source_path")
    @classmethod
    def source_must_exist(cls, value: Path) -> Path:
        if not value.exists() or not value.is_file():
            raise ValueError(f"source_path '{value}' must exist and be a file")
        return value

    @model_validator(mode="after")
    def ensure_distinct_paths(self) -> "AnonymizeConfig":
        if self.source_path.resolve() == self.output_path.resolve():
            raise ValueError("output_path must differ from source_path")
        return self

    def aliases_for(self, entity: str) -> list[AliasTable]:
        return [alias for alias in self.alias_tables if alias.entity == entity]

    @property
    def emptied_tables(self) -> set[str]:
        """Tables whose rows are deleted rather than anonymised."""

        return {*self.blob_tables, *self.external_id_tables}


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"


class StageRecord(BaseModel):
    name: str
    title: str
    status: StageStatus = StageStatus.PENDING
    rows: int = 0
    started_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    error: Optional[str] = None


class AnonymizeResult(BaseModel):
    source_path: Path
    output_path: Path
    status: StageStatus
    stages: list[StageRecord] = Field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def rows_processed(self) -> int:
        return sum(stage.rows for stage in self.stages)


def load_config(path: Path, **overrides: Any) -> AnonymizeConfig:
    """Load an anonymisation config from a JSON or YAML file.

    Keyword overrides (typically command line values) take precedence over the
    file; ``None`` overrides are ignored.
    """

    import json

    text = path.read_text()
    if path.suffix.lower() in {".yaml", ".yml"}:
        import yaml  # type: ignore

        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    data.update({key: value for key, value in overrides.items() if value is not None})
    return AnonymizeConfig.model_validate(data)

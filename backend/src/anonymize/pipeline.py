"""Sequential stage execution with abort-on-first-error semantics."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from .config import AnonymizeConfig, StageRecord, StageStatus
from .snapshot import WorkingStore

logger = logging.getLogger(__name__)


@dataclass
class StageContext:
    """Everything a stage needs: the working store and the run configuration."""

    store: WorkingStore
    config: AnonymizeConfig


# A stage returns the number of rows it processed, or None when not meaningful
StageRunner = Callable[[StageContext], Optional[int]]


@dataclass(frozen=True)
class Stage:
    name: str
    title: str
    run: StageRunner


@dataclass
class StagePipeline:
    """Run stages in order; the first failure aborts the run.

    Work committed by earlier stages stays in the working store; callers run
    the pipeline inside ``snapshot.working_copy`` so an aborted run deletes the
    whole file.
    """

    stages: Sequence[Stage]
    records: list[StageRecord] = field(init=False)
    status: StageStatus = field(init=False, default=StageStatus.PENDING)

    def __post_init__(self) -> None:
        self.records = [StageRecord(name=stage.name, title=stage.title) for stage in self.stages]

    def run(self, context: StageContext) -> list[StageRecord]:
        self.status = StageStatus.RUNNING

        for stage, record in zip(self.stages, self.records):
            logger.info("Anonymising %s", stage.title)
            record.status = StageStatus.RUNNING
            record.started_at = datetime.now(timezone.utc)
            started = time.monotonic()
            try:
                rows = stage.run(context)
            except Exception as exc:
                record.status = StageStatus.FAILED
                record.error = str(exc)
                record.duration_seconds = time.monotonic() - started
                self.status = StageStatus.ABORTED
                logger.exception("Stage %s failed, aborting run: %s", stage.name, exc)
                raise

            record.rows = rows or 0
            record.duration_seconds = time.monotonic() - started
            record.status = StageStatus.SUCCEEDED
            logger.info(
                "Finished %s: %d rows in %.1fs",
                stage.title,
                record.rows,
                record.duration_seconds,
            )

        self.status = StageStatus.SUCCEEDED
        return self.records

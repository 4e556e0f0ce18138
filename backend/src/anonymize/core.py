"""Entry point of the anonymisation engine."""

from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

from .config import AnonymizeConfig, AnonymizeResult
from .pipeline import Stage, StageContext, StagePipeline
from .snapshot import working_copy
from .stages import build_stages

logger = logging.getLogger(__name__)


def run_anonymization(
    config: AnonymizeConfig,
    *,
    stages: Optional[Sequence[Stage]] = None,
    pipeline: Optional[StagePipeline] = None,
) -> AnonymizeResult:
    """Write an anonymised copy of ``config.source_path`` to ``config.output_path``.

    The source is never modified. When any stage fails the output file is
    deleted and the stage's exception propagates; ``pipeline.records`` then
    shows which stage failed.
    """

    started = time.monotonic()
    pipeline = pipeline or StagePipeline(list(stages) if stages is not None else build_stages(config))

    logger.info("Anonymising %s into %s", config.source_path, config.output_path)
    with working_copy(config.source_path, config.output_path) as store:
        pipeline.run(StageContext(store=store, config=config))

    duration = time.monotonic() - started
    logger.info("Anonymised database written to %s in %.1fs", config.output_path, duration)

    return AnonymizeResult(
        source_path=config.source_path,
        output_path=config.output_path,
        status=pipeline.status,
        stages=pipeline.records,
        duration_seconds=duration,
    )

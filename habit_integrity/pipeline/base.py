"""
Abstract base class for audited pipeline stages.

Every stage follows the same contract:
  1. Receive ``AppConfig`` at construction.
  2. ``run(**kwargs)`` creates a ``RunMetadata`` record, calls ``_execute()``,
     and persists the run record with its final status.
  3. ``_execute()`` is the stage-specific implementation.  It may set
     ``run.status`` itself (e.g. ``"partial"``); otherwise a clean return
     means ``"success"``.

Usage::

    class MyStage(PipelineStage):
        stage_name = "recompute_all"

        def _execute(self, run: RunMetadata, **kwargs) -> int:
            return 42

    run = MyStage(config=app_config).run()
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from uuid import uuid4

from habit_integrity.config import AppConfig
from habit_integrity.db.connection import database_settings, get_connection
from habit_integrity.models.meta import RunMetadata
from habit_integrity.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class PipelineStage(ABC):
    """Abstract base for audited stages.

    Attributes:
        stage_name: String identifier matching a valid ``RunMetadata.pipeline_stage``.
        config: The application configuration for this run.
        database: Database settings; ``config.database`` unless a ``db_path``
            override was given.
    """

    stage_name: str

    def __init__(
        self,
        config: AppConfig,
        db_path: str | None = None,
    ) -> None:
        self.config = config
        self.database = database_settings(config, db_path)

    def run(self, **kwargs) -> RunMetadata:
        """Execute this stage and persist its audit record.

        Args:
            **kwargs: Stage-specific keyword arguments passed to ``_execute()``.

        Returns:
            ``RunMetadata`` with final ``status``, ``rows_processed``,
            and ``finished_at`` set.

        Raises:
            Exception: Re-raises any exception from ``_execute()`` after
                recording ``status='failed'``.
            KeyboardInterrupt: Re-raised after recording ``status='failed'``.
        """
        run = RunMetadata(
            run_slug=str(uuid4()),
            pipeline_stage=self.stage_name,
            scoring_version=self.config.scoring.version,
            config_snapshot=self.config.model_dump(),
            started_at=utcnow(),
        )
        logger.info("Stage [%s] starting | run_slug=%s", self.stage_name, run.run_slug)

        try:
            rows = self._execute(run=run, **kwargs)
            if run.status == "started":
                run.status = "success"
            run.rows_processed = rows
            run.finished_at = utcnow()
            logger.info(
                "Stage [%s] finished | status=%s | rows=%d | errors=%d | run_slug=%s",
                self.stage_name, run.status, rows, run.error_count, run.run_slug,
            )

        except KeyboardInterrupt:
            run.status = "failed"
            run.error_message = "Interrupted before completion."
            run.finished_at = utcnow()
            logger.warning("Stage [%s] interrupted | run_slug=%s", self.stage_name, run.run_slug)
            self._persist_run(run)
            raise

        except Exception as exc:
            run.status = "failed"
            run.error_message = str(exc)
            run.finished_at = utcnow()
            logger.error(
                "Stage [%s] FAILED: %s | run_slug=%s",
                self.stage_name, exc, run.run_slug,
            )
            self._persist_run(run)
            raise

        self._persist_run(run)
        return run

    @abstractmethod
    def _execute(self, run: RunMetadata, **kwargs) -> int:
        """Stage-specific implementation.

        Args:
            run: The in-progress ``RunMetadata`` record (mutable).
            **kwargs: Stage-specific parameters.

        Returns:
            Integer count of records processed successfully.
        """
        ...

    def _persist_run(self, run: RunMetadata) -> None:
        """Write or update the ``RunMetadata`` record.

        Persistence failure is logged, not raised, so it never masks the
        stage's own outcome.
        """
        try:
            from habit_integrity.db.repositories.run_repo import RunMetadataRepository

            with get_connection(self.database) as conn:
                repo = RunMetadataRepository(conn)
                if run.run_id is None:
                    run.run_id = repo.insert_run(run)
                else:
                    repo.update_run(run)
        except Exception as exc:
            logger.error(
                "Failed to persist RunMetadata for run_slug=%s: %s",
                run.run_slug, exc,
            )

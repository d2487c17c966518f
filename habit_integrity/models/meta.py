"""
Run metadata — the audit record of every batch recompute sweep.

``RunMetadata`` records a complete ``config_snapshot`` (full AppConfig as a
dict) so any sweep can be reproduced by restoring that config and re-running.

``RunMetadata`` is the **only** Pydantic model in the system that is NOT
frozen — its ``status``, ``rows_processed``, ``error_message``, and
``finished_at`` fields are updated as the sweep executes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

VALID_PIPELINE_STAGES = frozenset({"recompute_all"})
VALID_RUN_STATUSES = frozenset({"started", "success", "partial", "failed"})


class RunMetadata(BaseModel):
    """Batch recompute audit record.

    Attributes:
        run_id: Auto-assigned DB PK; ``None`` before insertion.
        run_slug: UUID4 string uniquely identifying this run.
        pipeline_stage: Which stage produced this run record.
        status: Current execution status.
        scoring_version: ``ScoringConfig.version`` in force for the run.
        config_snapshot: Full ``AppConfig.model_dump()`` at run start time.
        rows_processed: Users scored successfully.
        error_count: Users that failed.
        error_message: Summary of failures, if any.
        started_at: UTC datetime when the run began.
        finished_at: UTC datetime when the run completed or failed.
    """

    # Not frozen: status, rows_processed, etc. are updated during execution
    model_config = ConfigDict(frozen=False)

    run_id: Optional[int] = None
    run_slug: str
    pipeline_stage: str
    status: str = "started"
    scoring_version: Optional[str] = None
    config_snapshot: dict[str, Any]
    rows_processed: int = 0
    error_count: int = 0
    error_message: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None

    @field_validator("pipeline_stage")
    @classmethod
    def validate_pipeline_stage(cls, v: str) -> str:
        if v not in VALID_PIPELINE_STAGES:
            raise ValueError(
                f"Unknown pipeline_stage '{v}'. Must be one of {sorted(VALID_PIPELINE_STAGES)}."
            )
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in VALID_RUN_STATUSES:
            raise ValueError(
                f"Unknown status '{v}'. Must be one of {sorted(VALID_RUN_STATUSES)}."
            )
        return v

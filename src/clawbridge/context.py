"""Per-run context threaded through pipeline stages."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

_DEFAULT_LOGGER_NAME = "clawbridge.run"


class RunLogAdapter(logging.LoggerAdapter):
    """Prefix every record with the stage and run identifiers."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = dict(self.extra or {})
        stage = extra.get("stage")
        run_id = extra.get("run_id")
        prefix = f"[{stage}] " if stage else ""
        if run_id:
            prefix = f"run={run_id} {prefix}"
        kwargs.setdefault("extra", {}).update(extra)
        return f"{prefix}{msg}", kwargs


@dataclass(slots=True)
class RunContext:
    """Explicit log sink and run identity shared by one pipeline execution.

    Pipeline stages log run-scoped records through ``ctx.log`` (or
    ``ctx.for_stage(name).log``); command-level code keeps its module logger.
    The default sink is the ``clawbridge.run`` logger.
    """

    run_id: str = ""
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger(_DEFAULT_LOGGER_NAME),
    )
    stage: str = ""

    @property
    def log(self) -> RunLogAdapter:
        return RunLogAdapter(self.logger, {"run_id": self.run_id, "stage": self.stage})

    def for_stage(self, stage: str) -> RunContext:
        return RunContext(run_id=self.run_id, logger=self.logger, stage=stage)

"""Per-query stage timings, reported in the response debug block and the log."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from uuid import uuid4

from docqa_engine.observability.logger import get_logger

logger = get_logger("tracing")


class TraceContext:
    """Times the stages of one query. Stages are recorded in completion order."""

    def __init__(
        self, trace_id: str | None = None, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.trace_id = trace_id or uuid4().hex
        self._clock = clock
        self._started = clock()
        self._stages: list[dict] = []

    @contextmanager
    def span(self, name: str, **fields) -> Iterator[None]:
        started = self._clock()
        try:
            yield
        finally:
            duration_ms = round((self._clock() - started) * 1000, 2)
            self._stages.append({"name": name, "duration_ms": duration_ms, **fields})
            logger.debug("stage_finished", stage=name, duration_ms=duration_ms, **fields)

    @property
    def elapsed_ms(self) -> float:
        return (self._clock() - self._started) * 1000

    def span_dicts(self) -> list[dict]:
        return [dict(stage) for stage in self._stages]

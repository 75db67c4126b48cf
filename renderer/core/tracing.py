"""Span timers passed explicitly into the rendering and generation code."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List

logger = logging.getLogger(__name__)


@dataclass
class Span:
    name: str
    elapsed_ms: float
    fields: Dict = field(default_factory=dict)
    failed: bool = False


class Tracer:
    """Times named blocks and hands finished spans to :meth:`record`."""

    @contextmanager
    def span(self, name: str, **fields) -> Iterator[Dict]:
        start = time.perf_counter()
        failed = False
        try:
            yield fields
        except BaseException:
            failed = True
            raise
        finally:
            elapsed = (time.perf_counter() - start) * 1000.0
            self.record(Span(name=name, elapsed_ms=elapsed, fields=dict(fields), failed=failed))

    def record(self, span: Span) -> None:
        raise NotImplementedError


class NullTracer(Tracer):
    def record(self, span: Span) -> None:
        pass


class LoggingTracer(Tracer):
    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logger

    def record(self, span: Span) -> None:
        status = "failed" if span.failed else "ok"
        self.log.debug("span %s %s in %.1fms %s", span.name, status, span.elapsed_ms, span.fields)


class RecordingTracer(Tracer):
    """Keeps spans in memory, in completion order."""

    def __init__(self):
        self.spans: List[Span] = []

    def record(self, span: Span) -> None:
        self.spans.append(span)

    def names(self) -> List[str]:
        return [s.name for s in self.spans]

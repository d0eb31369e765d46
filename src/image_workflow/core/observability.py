"""Context-aware logging and per-step attempt metrics for workflow runs."""

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from .logging_config import get_logger


@dataclass(frozen=True)
class LogContext:
    """
    Identifies what a log line is about.

    ``correlation_id`` is the upload key or the execution name, ``component``
    names the service emitting the line and ``step`` the workflow step being
    run, if any. ``fields`` are appended to every message logged with it.
    """

    correlation_id: str
    component: str = ""
    step: str = ""
    fields: Dict[str, Any] = field(default_factory=dict)

    def for_step(self, step: str) -> "LogContext":
        return replace(self, step=step)

    def bind(self, **fields: Any) -> "LogContext":
        return replace(self, fields={**self.fields, **fields})

    def render(self, message: str, extra: Optional[Dict[str, Any]] = None) -> str:
        """``component[step] correlation_id: message | k=v``"""
        prefix = self.component or "-"
        if self.step:
            prefix = f"{prefix}[{self.step}]"
        line = f"{prefix} {self.correlation_id}: {message}"
        return _append_fields(line, {**self.fields, **(extra or {})})


def _append_fields(line: str, fields: Dict[str, Any]) -> str:
    if not fields:
        return line
    return line + " | " + " ".join(f"{k}={v}" for k, v in fields.items())


class StructuredLogger:
    """Writes ``LogContext``-prefixed lines through the pipeline's stdlib logger."""

    def __init__(self, name: str, level: Optional[str] = None):
        self._logger = get_logger(name)
        if level:
            self._logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    @property
    def name(self) -> str:
        return self._logger.name

    def log(
        self,
        level: int,
        message: str,
        context: Optional[LogContext] = None,
        exc_info: bool = False,
        **fields: Any,
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        line = context.render(message, fields) if context else _append_fields(message, fields)
        self._logger.log(level, line, exc_info=exc_info)

    def debug(self, message: str, context: Optional[LogContext] = None, **fields: Any) -> None:
        self.log(logging.DEBUG, message, context, **fields)

    def info(self, message: str, context: Optional[LogContext] = None, **fields: Any) -> None:
        self.log(logging.INFO, message, context, **fields)

    def warning(self, message: str, context: Optional[LogContext] = None, **fields: Any) -> None:
        self.log(logging.WARNING, message, context, **fields)

    def error(
        self,
        message: str,
        context: Optional[LogContext] = None,
        exc_info: bool = False,
        **fields: Any,
    ) -> None:
        self.log(logging.ERROR, message, context, exc_info=exc_info, **fields)


@dataclass(frozen=True)
class StepAttempt:
    """Timing of one attempt at one workflow step."""

    execution_id: str
    step: str
    attempt: int
    started: float
    finished: float
    succeeded: bool
    error: Optional[str] = None

    @property
    def duration(self) -> float:
        return self.finished - self.started


class StepMetrics:
    """
    Thread-safe sink for :class:`StepAttempt` records.

    Engines running under the multithread batch driver share one instance.
    """

    def __init__(self) -> None:
        self._attempts: List[StepAttempt] = []
        self._lock = threading.Lock()

    def record(self, attempt: StepAttempt) -> None:
        with self._lock:
            self._attempts.append(attempt)

    def attempts(self, step: Optional[str] = None) -> List[StepAttempt]:
        with self._lock:
            return [a for a in self._attempts if step is None or a.step == step]

    def summary(self, step: Optional[str] = None) -> Dict[str, Any]:
        """
        Aggregate attempts, optionally for a single step.

        ``retried_executions`` counts executions that needed more than one
        attempt at the step. An empty dict means nothing was recorded.
        """
        attempts = self.attempts(step)
        if not attempts:
            return {}

        durations = [a.duration for a in attempts]
        failures = sum(1 for a in attempts if not a.succeeded)
        retried = {a.execution_id for a in attempts if a.attempt > 1}
        return {
            "attempts": len(attempts),
            "failures": failures,
            "failure_rate": failures / len(attempts),
            "retried_executions": len(retried),
            "avg_duration": sum(durations) / len(durations),
            "max_duration": max(durations),
            "total_duration": sum(durations),
        }

    def reset(self) -> None:
        with self._lock:
            self._attempts.clear()

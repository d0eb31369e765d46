"""In-process state machine sequencing validate -> resize -> exposure."""

import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, Type

from .clock import SystemClock
from .error_handling import NON_RETRYABLE_ERRORS, is_retryable
from .exceptions import WorkflowTimeoutError
from .executions import InMemoryExecutionStore, execution_name_for
from .models import (
    ExecutionState,
    FailureRecord,
    ProcessedFiles,
    ProcessingJob,
    StepError,
    StepOutcome,
    StepRecord,
    StepRetry,
    StepSuccess,
    SuccessRecord,
    WorkflowExecution,
    isoformat,
)
from .observability import LogContext, StepAttempt, StepMetrics, StructuredLogger
from .protocols import ClockProtocol, ExecutionStore, LoggerProtocol

DEFAULT_EXECUTION_TIMEOUT_SECONDS = 300.0

StepHandler = Callable[[Dict[str, Any]], Dict[str, Any]]
PayloadBuilder = Callable[[ProcessingJob, Dict["StepName", Dict[str, Any]]], Dict[str, Any]]


class StepName(str, Enum):
    VALIDATE_INPUT = "ValidateInput"
    RESIZE_IMAGE = "ResizeImage"
    ADJUST_EXPOSURE = "AdjustExposure"
    RECORD_SUCCESS = "RecordSuccess"
    HANDLE_ERROR = "HandleError"


@dataclass(frozen=True)
class RetryPolicy:
    """Retry rule for one step: ``max_attempts`` counts the first try."""

    interval_seconds: float
    max_attempts: int
    backoff_rate: float = 2.0
    non_retryable: Tuple[Type[BaseException], ...] = NON_RETRYABLE_ERRORS

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        return self.interval_seconds * self.backoff_rate ** (attempt - 1)


DEFAULT_RETRY_TABLE: Dict[StepName, RetryPolicy] = {
    StepName.VALIDATE_INPUT: RetryPolicy(interval_seconds=2.0, max_attempts=2),
    StepName.RESIZE_IMAGE: RetryPolicy(interval_seconds=5.0, max_attempts=3),
    StepName.ADJUST_EXPOSURE: RetryPolicy(interval_seconds=5.0, max_attempts=3),
}


class StepService(Protocol):
    def handle(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class WorkflowStep:
    name: StepName
    handler: StepHandler
    build_payload: PayloadBuilder
    retry: RetryPolicy


class WorkflowEngine:
    """
    Runs one execution per processing job through
    ``ValidateInput -> ResizeImage -> AdjustExposure -> RecordSuccess``.

    Any step error, an invalid validation result, or exceeding the execution
    timeout moves the execution to ``HandleError``. Transient step failures
    are retried according to the step's :class:`RetryPolicy`; the engine is
    the only place that decides between retrying and failing.
    """

    def __init__(
        self,
        validator: StepService,
        resize_stage: StepService,
        exposure_stage: StepService,
        execution_store: Optional[ExecutionStore] = None,
        logger: Optional[LoggerProtocol] = None,
        clock: Optional[ClockProtocol] = None,
        sleep: Callable[[float], None] = time.sleep,
        retry_table: Optional[Dict[StepName, RetryPolicy]] = None,
        timeout_seconds: float = DEFAULT_EXECUTION_TIMEOUT_SECONDS,
        resize_width: Optional[int] = None,
        resize_height: Optional[int] = None,
        maintain_aspect_ratio: bool = True,
        exposure_adjustment: float = 0.1,
        step_metrics: Optional[StepMetrics] = None,
    ):
        self._store = execution_store or InMemoryExecutionStore()
        self._logger = logger or StructuredLogger("workflow")
        self._clock = clock or SystemClock()
        self._sleep = sleep
        self._timeout_seconds = timeout_seconds
        self._step_metrics = step_metrics

        self._resize_width = resize_width
        self._resize_height = resize_height
        self._maintain_aspect_ratio = maintain_aspect_ratio
        self._exposure_adjustment = exposure_adjustment

        retries = {**DEFAULT_RETRY_TABLE, **(retry_table or {})}
        self._steps: List[WorkflowStep] = [
            WorkflowStep(
                StepName.VALIDATE_INPUT,
                validator.handle,
                self._validate_payload,
                retries[StepName.VALIDATE_INPUT],
            ),
            WorkflowStep(
                StepName.RESIZE_IMAGE,
                resize_stage.handle,
                self._resize_payload,
                retries[StepName.RESIZE_IMAGE],
            ),
            WorkflowStep(
                StepName.ADJUST_EXPOSURE,
                exposure_stage.handle,
                self._exposure_payload,
                retries[StepName.ADJUST_EXPOSURE],
            ),
        ]
    def _validate_payload(self, job: ProcessingJob, outputs: Dict[StepName, Dict[str, Any]]) -> Dict[str, Any]:
        return {"bucket": job.bucket, "key": job.key}

    def _resize_payload(self, job: ProcessingJob, outputs: Dict[StepName, Dict[str, Any]]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "bucket": job.bucket,
            "key": job.key,
            "maintainAspectRatio": self._maintain_aspect_ratio,
        }
        if self._resize_width:
            payload["width"] = self._resize_width
        if self._resize_height:
            payload["height"] = self._resize_height
        return payload

    def _exposure_payload(self, job: ProcessingJob, outputs: Dict[StepName, Dict[str, Any]]) -> Dict[str, Any]:
        # Exposure works on the resized output, not the original upload.
        return {
            "bucket": job.bucket,
            "key": outputs[StepName.RESIZE_IMAGE]["outputKey"],
            "adjustment": self._exposure_adjustment,
        }

    def start_execution(self, job: ProcessingJob, name: Optional[str] = None) -> WorkflowExecution:
        """
        Register and run an execution for ``job``.

        Raises:
            ExecutionAlreadyExistsError: If an execution with this name exists
        """
        execution = WorkflowExecution(
            execution_id=name or execution_name_for(job),
            job=job,
            started_at=isoformat(self._clock.now()),
        )
        self._store.create(execution)
        return self.run(execution)

    def describe_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        return self._store.get(execution_id)

    def run(self, execution: WorkflowExecution) -> WorkflowExecution:
        log_context = LogContext(
            correlation_id=execution.execution_id,
            component="workflow_engine",
        ).bind(key=execution.job.key)
        self._logger.info("Starting workflow execution", log_context)

        deadline = self._clock.now() + timedelta(seconds=self._timeout_seconds)
        outputs: Dict[StepName, Dict[str, Any]] = {}

        try:
            for step in self._steps:
                execution.current_step = step.name.value
                self._store.update(execution)
                self._check_deadline(deadline)

                payload = step.build_payload(execution.job, outputs)
                outcome, record = self._run_step(step, payload, deadline, log_context)
                execution.step_results.append(record)

                if isinstance(outcome, StepError):
                    return self._handle_error(execution, outcome.error, log_context)

                outputs[step.name] = outcome.output
                if step.name is StepName.VALIDATE_INPUT and not outcome.output.get("isValid"):
                    return self._handle_error(
                        execution, outcome.output.get("error") or "Validation failed", log_context
                    )

            self._check_deadline(deadline)
        except WorkflowTimeoutError as e:
            return self._handle_error(execution, str(e), log_context)
        except Exception as e:  # noqa: BLE001
            self._logger.error(
                "Unexpected error while running workflow",
                log_context,
                error_type=type(e).__name__,
                error=str(e),
                exc_info=True,
            )
            return self._handle_error(execution, str(e) or type(e).__name__, log_context)
        return self._record_success(execution, outputs, log_context)

    def _timeout_message(self) -> str:
        return f"Execution timed out after {self._timeout_seconds:g} seconds"

    def _check_deadline(self, deadline: datetime) -> None:
        if self._clock.now() >= deadline:
            raise WorkflowTimeoutError(self._timeout_message())

    def _run_step(
        self,
        step: WorkflowStep,
        payload: Dict[str, Any],
        deadline: datetime,
        log_context: LogContext,
    ) -> Tuple[StepOutcome, StepRecord]:
        step_context = log_context.for_step(step.name.value)
        record = StepRecord(step=step.name.value, status="running", started_at=isoformat(self._clock.now()))

        attempt = 0
        while True:
            attempt += 1
            outcome = self._attempt(step, payload, attempt, step_context)

            if isinstance(outcome, StepRetry):
                if attempt >= step.retry.max_attempts:
                    self._logger.error(
                        f"Step failed after {attempt} attempts", step_context, reason=outcome.reason
                    )
                    outcome = StepError(error=outcome.reason)
                else:
                    delay = step.retry.delay_after(attempt)
                    if self._clock.now() + timedelta(seconds=delay) >= deadline:
                        outcome = StepError(error=self._timeout_message())
                    else:
                        self._logger.warning(
                            f"Retrying in {delay:.1f}s",
                            step_context,
                            attempt=attempt,
                            max_attempts=step.retry.max_attempts,
                            reason=outcome.reason,
                        )
                        self._sleep(delay)
                        continue
            break

        record.attempts = attempt
        record.finished_at = isoformat(self._clock.now())
        if isinstance(outcome, StepSuccess):
            record.status = "succeeded"
            record.output = outcome.output
        else:
            record.status = "failed"
            record.error = outcome.error
        return outcome, record

    def _attempt(
        self,
        step: WorkflowStep,
        payload: Dict[str, Any],
        attempt: int,
        step_context: LogContext,
    ) -> StepOutcome:
        start_time = time.time()
        outcome: StepOutcome
        try:
            outcome = StepSuccess(output=step.handler(payload))
        except Exception as e:  # noqa: BLE001
            reason = str(e) or type(e).__name__
            if is_retryable(e, step.retry.non_retryable):
                self._logger.warning(
                    "Step attempt failed", step_context, attempt=attempt, error=reason
                )
                outcome = StepRetry(reason=reason)
            else:
                self._logger.error(
                    "Step failed with terminal error",
                    step_context,
                    error_type=type(e).__name__,
                    error=reason,
                )
                outcome = StepError(error=reason)

        if self._step_metrics:
            self._step_metrics.record(
                StepAttempt(
                    execution_id=step_context.correlation_id,
                    step=step.name.value,
                    attempt=attempt,
                    started=start_time,
                    finished=time.time(),
                    succeeded=isinstance(outcome, StepSuccess),
                    error=outcome.reason if isinstance(outcome, StepRetry) else getattr(outcome, "error", None),
                )
            )
        return outcome

    def _handle_error(
        self, execution: WorkflowExecution, error: str, log_context: LogContext
    ) -> WorkflowExecution:
        now = isoformat(self._clock.now())
        execution.current_step = StepName.HANDLE_ERROR.value
        execution.state = ExecutionState.FAILED
        execution.output = FailureRecord(original_key=execution.job.key, error=error, failed_at=now)
        execution.stopped_at = now
        self._persist_final(execution, log_context)

        self._logger.error("Workflow execution failed", log_context, error=error)
        return execution

    def _record_success(
        self,
        execution: WorkflowExecution,
        outputs: Dict[StepName, Dict[str, Any]],
        log_context: LogContext,
    ) -> WorkflowExecution:
        now = isoformat(self._clock.now())
        execution.current_step = StepName.RECORD_SUCCESS.value
        execution.state = ExecutionState.SUCCEEDED
        execution.output = SuccessRecord(
            original_key=execution.job.key,
            processed_files=ProcessedFiles(
                resized=outputs[StepName.RESIZE_IMAGE]["outputKey"],
                adjusted=outputs[StepName.ADJUST_EXPOSURE]["outputKey"],
            ),
            completed_at=now,
        )
        execution.stopped_at = now
        self._persist_final(execution, log_context)

        self._logger.info("Workflow execution succeeded", log_context)
        return execution

    def _persist_final(self, execution: WorkflowExecution, log_context: LogContext) -> None:
        # The terminal state is still returned to the caller when the write fails.
        try:
            self._store.update(execution)
        except Exception as e:  # noqa: BLE001
            self._logger.error(
                "Failed to persist final execution state",
                log_context,
                state=execution.state.value,
                error=str(e),
                exc_info=True,
            )

"""Factory classes for creating configured service instances."""

from typing import Any, Optional

import boto3

from .core.clock import SystemClock
from .core.config import PipelineSettings
from .core.executions import InMemoryExecutionStore, S3ExecutionStore
from .core.keys import KeyGenerator
from .core.observability import StepMetrics, StructuredLogger
from .core.protocols import (
    ClockProtocol,
    ExecutionStore,
    LoggerProtocol,
    ObjectStoreProtocol,
    RandomSourceProtocol,
    WorkflowStarter,
)
from .core.services import ExposureStage, PresignService, ResizeStage, ValidatorService
from .core.step_functions import StepFunctionsStarter
from .core.storage import S3ObjectStore
from .core.workflow import WorkflowEngine
from .orchestrator import UploadOrchestrator
from .processors import BATCH_DRIVERS


class AwsClientFactory:
    """Factory for creating boto3 client instances."""

    @staticmethod
    def create_s3_client(region: Optional[str] = None, **kwargs: Any) -> Any:
        session = boto3.Session()
        return session.client("s3", region_name=region, **kwargs)

    @staticmethod
    def create_sfn_client(region: Optional[str] = None, **kwargs: Any) -> Any:
        session = boto3.Session()
        return session.client("stepfunctions", region_name=region, **kwargs)


class PipelineFactory:
    """Builds the pipeline's dependency graph from :class:`PipelineSettings`."""

    def __init__(
        self,
        settings: PipelineSettings,
        s3_client: Any = None,
        sfn_client: Any = None,
        logger: Optional[LoggerProtocol] = None,
        clock: Optional[ClockProtocol] = None,
        random_source: Optional[RandomSourceProtocol] = None,
        step_metrics: Optional[StepMetrics] = None,
        default_execution_store: str = "memory",
    ):
        self.settings = settings
        self._s3_client = s3_client
        self._sfn_client = sfn_client
        self._logger = logger
        self.clock = clock or SystemClock()
        self._random_source = random_source
        self.step_metrics = step_metrics
        self.default_execution_store = default_execution_store

    def logger(self, name: str) -> LoggerProtocol:
        if self._logger is not None:
            return self._logger
        return StructuredLogger(name)

    def object_store(self) -> ObjectStoreProtocol:
        if self._s3_client is None:
            self._s3_client = AwsClientFactory.create_s3_client(self.settings.aws_region)
        return S3ObjectStore(self._s3_client)

    def execution_store(self) -> ExecutionStore:
        """The configured store, or ``default_execution_store`` when none is set."""
        if (self.settings.execution_store or self.default_execution_store) == "s3":
            return S3ExecutionStore(self.object_store(), self.settings.bucket_name)
        return InMemoryExecutionStore()

    def create_presign_service(self) -> PresignService:
        return PresignService(
            object_store=self.object_store(),
            key_generator=KeyGenerator(self.clock, self._random_source),
            bucket=self.settings.bucket_name,
            logger=self.logger("presign"),
            clock=self.clock,
            max_file_size=self.settings.max_file_size,
            allowed_content_types=self.settings.allowed_content_types,
            ttl_seconds=self.settings.presign_ttl_seconds,
        )

    def create_validator(self) -> ValidatorService:
        return ValidatorService(
            self.object_store(),
            self.logger("validator"),
            max_file_size=self.settings.max_file_size,
            allowed_content_types=self.settings.allowed_content_types,
        )

    def create_resize_stage(self) -> ResizeStage:
        return ResizeStage(self.object_store(), self.logger("resize"), self.clock)

    def create_exposure_stage(self) -> ExposureStage:
        return ExposureStage(self.object_store(), self.logger("exposure"), self.clock)

    def create_engine(self, **overrides: Any) -> WorkflowEngine:
        """Create the in-process workflow engine; ``overrides`` go to its constructor."""
        options: dict = dict(
            execution_store=self.execution_store(),
            logger=self.logger("workflow"),
            clock=self.clock,
            timeout_seconds=self.settings.execution_timeout_seconds,
            resize_width=self.settings.resize_width,
            resize_height=self.settings.resize_height,
            maintain_aspect_ratio=self.settings.maintain_aspect_ratio,
            exposure_adjustment=self.settings.exposure_adjustment,
            step_metrics=self.step_metrics,
        )
        options.update(overrides)
        return WorkflowEngine(
            self.create_validator(),
            self.create_resize_stage(),
            self.create_exposure_stage(),
            **options,
        )

    def create_starter(self) -> WorkflowStarter:
        """Remote state machine when one is configured, otherwise the local engine."""
        if self.settings.state_machine_arn:
            if self._sfn_client is None:
                self._sfn_client = AwsClientFactory.create_sfn_client(self.settings.aws_region)
            return StepFunctionsStarter(self._sfn_client, self.settings.state_machine_arn)
        return self.create_engine()

    def create_orchestrator(self) -> UploadOrchestrator:
        return UploadOrchestrator(
            starter=self.create_starter(),
            logger=self.logger("orchestrator"),
            process_batch_fn=BATCH_DRIVERS[self.settings.batch_strategy],
        )

"""Workflow starter backed by an AWS Step Functions state machine."""

from typing import Any

from botocore.exceptions import ClientError

from .error_handling import client_error_code
from .exceptions import ExecutionAlreadyExistsError
from .models import ProcessingJob


class StepFunctionsStarter:
    """Starts remote executions; a reused name surfaces as ExecutionAlreadyExistsError."""

    def __init__(self, sfn_client: Any, state_machine_arn: str):
        self._sfn_client = sfn_client
        self._state_machine_arn = state_machine_arn

    def start_execution(self, job: ProcessingJob, name: str) -> str:
        try:
            response = self._sfn_client.start_execution(
                stateMachineArn=self._state_machine_arn,
                name=name,
                input=job.model_dump_json(by_alias=True),
            )
        except ClientError as e:
            if client_error_code(e) == "ExecutionAlreadyExists":
                raise ExecutionAlreadyExistsError(name) from e
            raise
        return response.get("executionArn", "")

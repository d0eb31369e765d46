"""Lambda-style entry points wiring events to the pipeline services."""

import json
from typing import Any, Dict, Optional

from .core.config import PipelineSettings
from .core.exceptions import UploadRequestError
from .core.protocols import LoggerProtocol
from .core.services import PresignService
from .factories import PipelineFactory

JSON_HEADERS = {"Content-Type": "application/json"}


def _json_response(
    status_code: int, body: Dict[str, Any], headers: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {**JSON_HEADERS, **(headers or {})},
        "body": json.dumps(body),
    }


def handle_presign_request(
    event: Dict[str, Any], service: PresignService, logger: LoggerProtocol
) -> Dict[str, Any]:
    """
    Turn an API Gateway proxy event into a presign response.

    Client input errors map to 400 with their message; anything else,
    including an unparseable body, maps to a generic 500.
    """
    try:
        logger.info("Presigned URL request received", path=event.get("path"))
        body = json.loads(event.get("body") or "{}")
        response = service.create_upload(body)
        return _json_response(
            200,
            response.model_dump(by_alias=True),
            headers={"Access-Control-Allow-Origin": "*"},
        )
    except UploadRequestError as e:
        logger.warning("Rejected upload request", error=str(e))
        return _json_response(400, {"error": str(e)})
    except Exception as e:  # noqa: BLE001
        logger.error("Error generating presigned URL", error=str(e), exc_info=True)
        return _json_response(500, {"error": "Internal server error"})


def _factory() -> PipelineFactory:
    # Each invocation may run in a fresh process, so in-process executions
    # are tracked in the bucket unless EXECUTION_STORE says otherwise.
    return PipelineFactory(PipelineSettings.from_env(), default_execution_store="s3")


def presign_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    factory = _factory()
    return handle_presign_request(
        event, factory.create_presign_service(), factory.logger("presign")
    )


def orchestrator_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    summary = _factory().create_orchestrator().handle_event(event)
    return summary.model_dump(mode="json")


def validate_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    return _factory().create_validator().handle(event)


def resize_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    return _factory().create_resize_stage().handle(event)


def exposure_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    return _factory().create_exposure_stage().handle(event)

"""Request parsing and JSON responses for the Azure Functions HTTP surface."""

from typing import Any, Dict, Optional, Type, TypeVar

import azure.functions as func
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..constants import BEARER_PREFIX, HeaderName
from ..exceptions import BaseError, ErrorCode, ValidationError, get_correlation_id
from ..utils.json_utils import dumps

M = TypeVar("M", bound=BaseModel)

JSON_MIMETYPE = "application/json"


def get_api_key(req: func.HttpRequest) -> Optional[str]:
    return req.headers.get(HeaderName.API_KEY.value) or None


def get_bearer_token(req: func.HttpRequest) -> Optional[str]:
    """Return the token of an `Authorization: Bearer <token>` header, if any."""
    header = req.headers.get(HeaderName.AUTHORIZATION.value) or ""
    if not header.startswith(BEARER_PREFIX):
        return None
    return header[len(BEARER_PREFIX) :].strip() or None


def get_client_ip(req: func.HttpRequest) -> Optional[str]:
    forwarded = req.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return None


def get_int_param(req: func.HttpRequest, name: str, default: int) -> int:
    raw = req.params.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValidationError(f"{name} must be an integer", field=name, cause=e) from e
    if value < 1:
        raise ValidationError(f"{name} must be positive", field=name)
    return value


def parse_body(req: func.HttpRequest, model: Type[M]) -> M:
    """
    Validate a JSON request body against a pydantic model.

    Raises:
        ValidationError: for a missing or malformed body, or a failed field check
    """
    try:
        data = req.get_json()
    except ValueError as e:
        raise ValidationError(
            "Request body must be valid JSON",
            error_code=ErrorCode.INVALID_FORMAT,
            field="body",
            cause=e,
        ) from e

    return validate_model(model, data)


def parse_params(req: func.HttpRequest, model: Type[M]) -> M:
    """Validate query string parameters against a pydantic model."""
    return validate_model(model, {k: v for k, v in req.params.items() if v != ""})


def validate_model(model: Type[M], data: Any) -> M:
    """Validate data, reporting failures as a control plane ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        # Inputs may carry passwords
        errors = [
            {k: v for k, v in error.items() if k != "input"}
            for error in e.errors(include_url=False, include_context=False)
        ]
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(
            first.get("msg", "Invalid request body"),
            field=field,
            errors=errors,
        ) from e


def json_response(
    payload: Any, status_code: int = 200, headers: Optional[Dict[str, str]] = None
) -> func.HttpResponse:
    response_headers = dict(headers or {})
    correlation_id = get_correlation_id()
    if correlation_id:
        response_headers[HeaderName.CORRELATION_ID.value] = correlation_id
    return func.HttpResponse(
        dumps(payload),
        status_code=status_code,
        mimetype=JSON_MIMETYPE,
        headers=response_headers,
    )


def error_response(error: BaseError, debug: bool = False) -> func.HttpResponse:
    """Render a control plane error with its own status code."""
    return json_response(
        error.to_dict(include_cause=debug, include_traceback=debug),
        status_code=error.status_code,
    )

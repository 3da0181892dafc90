"""Azure Functions HTTP surface."""

from .handlers import ControlPlaneHandlers, endpoint
from .http_utils import (
    error_response,
    get_api_key,
    get_bearer_token,
    json_response,
    parse_body,
    parse_params,
)

__all__ = [
    "ControlPlaneHandlers",
    "endpoint",
    "error_response",
    "get_api_key",
    "get_bearer_token",
    "json_response",
    "parse_body",
    "parse_params",
]

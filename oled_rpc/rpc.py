"""
JSON-RPC 2.0 request handling.

Provides a small method registry (`JsonRpcHandler`) that decodes a request
body, dispatches single or batch calls to registered handlers and builds
response objects. Handler exceptions are mapped through `errors.translate`.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError

from .errors import (
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    RpcErrorPayload,
    translate,
)


logger = logging.getLogger(__name__)

RequestId = Union[StrictInt, StrictStr, None]
MethodHandler = Callable[[Any], Any]


class RpcRequest(BaseModel):
    jsonrpc: Literal["2.0"]
    method: StrictStr
    params: Union[List[Any], Dict[str, Any], None] = None
    id: RequestId = None

    @property
    def is_notification(self) -> bool:
        return "id" not in self.model_fields_set


def success_response(result: Any, request_id: RequestId) -> dict:
    return {"jsonrpc": "2.0", "result": result, "id": request_id}


def error_response(error: RpcErrorPayload, request_id: RequestId = None) -> dict:
    return {"jsonrpc": "2.0", "error": error.to_dict(), "id": request_id}


class JsonRpcHandler:
    """Registry of RPC methods plus request/response framing."""

    def __init__(self) -> None:
        self._methods: Dict[str, MethodHandler] = {}

    def add_method(self, name: str, handler: MethodHandler) -> None:
        self._methods[name] = handler

    @property
    def methods(self) -> List[str]:
        return sorted(self._methods)

    def handle_raw(self, body: Union[bytes, str]) -> Optional[Any]:
        """
        Handle a raw request body.

        Returns:
            Response object or list of them, or None when nothing must be sent back
        """
        try:
            payload = json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to parse request body: {e}")
            return error_response(RpcErrorPayload(PARSE_ERROR, "Parse error"))
        return self.handle_payload(payload)

    def handle_payload(self, payload: Any) -> Optional[Any]:
        if isinstance(payload, list):
            if not payload:
                return error_response(RpcErrorPayload(INVALID_REQUEST, "Invalid request"))
            responses = [r for r in (self._handle_one(p) for p in payload) if r is not None]
            return responses or None
        return self._handle_one(payload)

    def _handle_one(self, payload: Any) -> Optional[dict]:
        try:
            request = RpcRequest.model_validate(payload)
        except PydanticValidationError:
            request_id = payload.get("id") if isinstance(payload, dict) else None
            if not isinstance(request_id, (int, str)) or isinstance(request_id, bool):
                request_id = None
            return error_response(RpcErrorPayload(INVALID_REQUEST, "Invalid request"), request_id)

        handler = self._methods.get(request.method)
        if handler is None:
            logger.info(f"Unknown method '{request.method}'")
            response = error_response(
                RpcErrorPayload(METHOD_NOT_FOUND, "Method not found"), request.id
            )
        else:
            try:
                response = success_response(handler(request.params), request.id)
            except Exception as e:
                error = translate(e)
                logger.info(f"'{request.method}' failed: {error.code} {error.message}")
                response = error_response(error, request.id)

        if request.is_notification:
            return None
        return response

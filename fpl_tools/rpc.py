"""
JSON-RPC 2.0 dispatch for the MCP endpoint.

Stateless: every request is handled on its own, no session is kept.
"""
import logging
from typing import Any, Dict, Optional

from fpl_tools import tools

logger = logging.getLogger("rpc")

SERVER_NAME = "fpl-mcp"
SERVER_VERSION = "1.0.0"
PROTOCOL_VERSION = "2025-03-26"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_ERROR = -32000


def error_response(code: int, message: str, request_id: Any = None) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": request_id}


def _result(result: Any, request_id: Any) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "result": result, "id": request_id}


def _initialize(params: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "protocolVersion": params.get("protocolVersion") or PROTOCOL_VERSION,
        "capabilities": {"tools": {"listChanged": False}},
        "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
    }


async def handle_message(message: Any) -> Optional[Dict[str, Any]]:
    """
    Handle one JSON-RPC message.

    Returns:
        The response object, or None for notifications
    """
    if not isinstance(message, dict) or message.get("jsonrpc") != "2.0" or "method" not in message:
        request_id = message.get("id") if isinstance(message, dict) else None
        return error_response(INVALID_REQUEST, "Invalid Request", request_id)

    method = message["method"]
    params = message.get("params") or {}
    request_id = message.get("id")
    is_notification = "id" not in message

    if is_notification:
        logger.debug(f"Notification: {method}")
        return None

    if not isinstance(params, dict):
        return error_response(INVALID_PARAMS, "params must be an object", request_id)

    try:
        if method == "initialize":
            return _result(_initialize(params), request_id)
        if method == "ping":
            return _result({}, request_id)
        if method == "tools/list":
            return _result({"tools": tools.list_tools()}, request_id)
        if method == "tools/call":
            name = params.get("name")
            if name not in tools.TOOLS:
                return error_response(INVALID_PARAMS, f"Unknown tool: {name}", request_id)
            result = await tools.call_tool(name, params.get("arguments"))
            return _result(result, request_id)
    except Exception:
        logger.exception(f"MCP handler error in {method}")
        return error_response(INTERNAL_ERROR, "Internal server error", request_id)

    return error_response(METHOD_NOT_FOUND, f"Method not found: {method}", request_id)

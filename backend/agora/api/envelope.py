"""
Response envelope shared by all endpoints.
"""

from typing import Any


def envelope(message: str, data: Any = None) -> dict[str, Any]:
    """Successful response body: ``{success, message, data?}``."""
    body: dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return body


def error_envelope(message: str, category: str) -> dict[str, Any]:
    """Failure response body with the error classification."""
    return {"success": False, "message": message, "error": category}

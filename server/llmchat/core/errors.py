from __future__ import annotations
from typing import Optional

TRANSPORT_FAILURE = "Request failed - check your API key and network connection"
MODELS_TRANSPORT_FAILURE = "Failed to fetch models - check your API key and endpoint"
UNREADABLE_API_ERROR = "API returned an error - check your API key"


def timeout_message(seconds: float) -> str:
    return f"Request timed out after {seconds:g} seconds"


def friendly_status_message(label: str, status: int) -> str:
    """Message for a non-2xx response whose body carried no readable error."""
    if status == 429:
        return f"[{label}] Too many requests. You have hit the rate limit. Please wait a moment and try again."
    if status in (401, 403):
        return f"[{label}] Authentication/permission issue. Check your API key and model access."
    if status == 404:
        return f"[{label}] Not found. Check the endpoint URL and the model id."
    if status == 400:
        return f"[{label}] Bad request. Please verify the model id and payload parameters."
    return f"[{label}] Request failed with HTTP {status}."


def error_hint(message: str) -> Optional[str]:
    """Suggest a next step for an error shown to the user, if one is obvious."""
    lowered = message.lower()
    if any(s in lowered for s in ("api key", "api_key", "unauthorized", "401")):
        return "Please check your API key in Settings."
    if "model" in lowered or "does not exist" in lowered:
        return "The selected model may not be available. Try fetching models in Settings."
    if any(s in lowered for s in ("rate", "limit", "quota")):
        return "You may have exceeded your API rate limit or quota."
    if any(s in lowered for s in ("network", "connection", "failed", "timed out")):
        return "Please check your internet connection."
    return None

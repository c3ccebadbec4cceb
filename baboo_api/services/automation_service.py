"""Outbound calls to the automation broker (Make.com scenario webhooks)."""

from typing import Optional

import httpx

from baboo_api.logging_config import get_logger

logger = get_logger("automation_service")


class AutomationError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def post_to_automation(url: str, payload: dict, secret: Optional[str] = None, timeout: float = 10.0) -> dict:
    """POST a JSON payload to an automation webhook.

    Returns:
        Parsed JSON response, or {"raw": text} when the broker answers with plain text
        (Make.com answers "Accepted").

    Raises:
        AutomationError on transport failure, timeout or non-2xx status.
    """
    headers = {"Content-Type": "application/json"}
    if secret:
        headers["Authorization"] = f"Bearer {secret}"

    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.post(url, json=payload, headers=headers)
    except httpx.TimeoutException as e:
        raise AutomationError(f"Automation webhook timed out after {timeout}s") from e
    except httpx.HTTPError as e:
        raise AutomationError(f"Automation webhook request failed: {e}") from e

    if not response.is_success:
        raise AutomationError(
            f"Automation webhook returned {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
        )

    try:
        return response.json()
    except ValueError:
        return {"raw": response.text}


def send_best_effort(url: Optional[str], payload: dict, secret: Optional[str] = None, timeout: float = 10.0) -> bool:
    """Fire-and-forget variant: logs failures, never raises, no retry.

    Returns:
        True if the broker accepted the payload
    """
    if not url:
        logger.warning("Automation webhook not configured, skipping", extra={"context": {"payload_keys": list(payload)}})
        return False
    try:
        post_to_automation(url, payload, secret=secret, timeout=timeout)
        return True
    except AutomationError as e:
        logger.error(f"Automation delivery failed: {e.message}", extra={"context": {"url": url}})
        return False

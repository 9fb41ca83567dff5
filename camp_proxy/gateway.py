"""HTTP client for the Apps Script backend."""

import httpx

from camp_proxy.config import Settings
from camp_proxy.logging import get_logger

logger = get_logger(__name__)

PREVIEW_CHARS = 200


def build_http_client(settings: Settings) -> httpx.Client:
    # Apps Script answers /exec with a 302 to googleusercontent.com
    return httpx.Client(timeout=settings.http_timeout_seconds, follow_redirects=True)


class GatewayContractError(Exception):
    """The gateway answered with something other than the JSON we asked for."""

    def __init__(self, action: str, content_type: str, preview: str, reason: str = "non-JSON response"):
        self.action = action
        self.content_type = content_type
        self.preview = preview
        self.reason = reason
        super().__init__(f"gateway action={action}: {reason} ({content_type or 'no content-type'})")


def is_json_response(resp: httpx.Response) -> bool:
    return "application/json" in resp.headers.get("content-type", "").lower()


class GatewayClient:
    def __init__(self, settings: Settings, client: httpx.Client):
        self.url = settings.gateway_url
        self.client = client

    def get_json(self, action: str, **params):
        """GET ``?action=...``; returns ``(payload, status_code)``."""
        query = {"action": action}
        query.update({k: v for k, v in params.items() if v is not None and v != ""})

        resp = self.client.get(self.url, params=query)
        if not is_json_response(resp):
            preview = resp.text[:PREVIEW_CHARS]
            content_type = resp.headers.get("content-type", "")
            logger.warning(
                "Gateway returned non-JSON",
                action=action,
                status=resp.status_code,
                content_type=content_type,
                preview=preview,
            )
            raise GatewayContractError(action, content_type, preview)
        return resp.json(), resp.status_code

    def post_raw(self, body: str) -> httpx.Response:
        return self.client.post(
            self.url,
            content=body.encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )

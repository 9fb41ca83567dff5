"""Write forwarding: the generic relay and the daily report submission."""

import json

import httpx

from camp_proxy.events import body_of, is_truthy_flag, method_of, preflight_response, text_response
from camp_proxy.gateway import GatewayClient
from camp_proxy.logging import get_logger
from camp_proxy.store import CacheStore, PostLog

logger = get_logger(__name__)

POST_METHODS = "POST, OPTIONS"
DIARY_PREFIX = "diary_"

# The gateway answers writes with free text, so success is guessed from the wording
FAILURE_MARKERS = ("❌", "失敗", "Error")
ERROR_KEYWORDS = ("error", "錯誤")


def looks_successful(text: str) -> bool:
    stripped = (text or "").strip()
    if stripped.startswith(FAILURE_MARKERS):
        return False
    lowered = stripped.lower()
    return not any(word in lowered for word in ERROR_KEYWORDS)


def wrote_diary(payload: dict) -> bool:
    diary_text = payload.get("diaryText")
    if isinstance(diary_text, str) and diary_text.strip():
        return True
    return is_truthy_flag(payload.get("diaryDone"))


class RelayHandler:
    """Forward any POST body to the gateway and hand back its text untouched."""

    def __init__(self, gateway: GatewayClient):
        self.gateway = gateway

    def __call__(self, event, context=None):
        method = method_of(event)
        if method == "OPTIONS":
            return preflight_response(POST_METHODS)
        if method != "POST":
            return text_response(405, "Method Not Allowed", methods=POST_METHODS)
        try:
            resp = self.gateway.post_raw(body_of(event))
            return text_response(200, resp.text, methods=POST_METHODS)
        except httpx.HTTPError as e:
            logger.warning("Relay to gateway failed", error=str(e))
            return text_response(500, "Relay failed: gateway unreachable", methods=POST_METHODS)
        except Exception:
            logger.exception("Relay to gateway failed")
            return text_response(500, "Relay failed: server error", methods=POST_METHODS)


class DailyReportHandler:
    def __init__(self, gateway: GatewayClient, post_log: PostLog, cache: CacheStore):
        self.gateway = gateway
        self.post_log = post_log
        self.cache = cache

    def __call__(self, event, context=None):
        method = method_of(event)
        if method == "OPTIONS":
            return preflight_response(POST_METHODS)
        if method != "POST":
            return text_response(405, "Method Not Allowed", methods=POST_METHODS)
        try:
            return self._submit(event)
        except Exception:
            logger.exception("Daily report failed")
            return text_response(500, "Server error", methods=POST_METHODS)

    def _submit(self, event):
        try:
            body = body_of(event)
            payload = json.loads(body)
        except ValueError:
            return text_response(400, "Invalid JSON", methods=POST_METHODS)
        if not isinstance(payload, dict):
            return text_response(400, "Expected a JSON object", methods=POST_METHODS)

        user_id = str(payload.get("userId") or "")
        failure = None
        with self.post_log.recording(body, user_id) as entry:
            try:
                resp = self.gateway.post_raw(body)
                entry.response = resp.text
                resp.raise_for_status()
            except httpx.HTTPStatusError as e:
                entry.error = str(e)
                failure = f"gateway status {e.response.status_code}"
                logger.warning("Daily report relay failed", user_id=user_id, error=str(e))
            except httpx.HTTPError as e:
                entry.error = str(e)
                failure = "gateway unreachable"
                logger.warning("Daily report relay failed", user_id=user_id, error=str(e))
            except Exception as e:
                entry.error = f"{type(e).__name__}: {e}"
                failure = "server error"
                logger.exception("Daily report relay failed", user_id=user_id)

        if failure is not None:
            return text_response(500, f"Relay failed: {failure}", methods=POST_METHODS)

        if looks_successful(entry.response) and wrote_diary(payload):
            self._invalidate_diaries(user_id)
        return text_response(200, entry.response, methods=POST_METHODS)

    def _invalidate_diaries(self, user_id: str) -> None:
        try:
            removed = self.cache.delete_prefix(DIARY_PREFIX)
            logger.info("Diary cache invalidated", user_id=user_id, removed=removed)
        except Exception:
            logger.exception("Diary cache invalidation failed", user_id=user_id)

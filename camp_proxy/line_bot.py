"""LINE webhook: chat commands that trigger a progress refresh."""

import json

import httpx

from camp_proxy.config import Settings
from camp_proxy.credentials import ChannelTokenProvider
from camp_proxy.events import body_of, method_of, preflight_response, text_response
from camp_proxy.logging import get_logger

logger = get_logger(__name__)

POST_METHODS = "POST, OPTIONS"

UNKNOWN_COMMAND_REPLY = "指令無法辨識，請輸入「{command}」更新訓練進度。"
REFRESH_FAILED_REPLY = "更新失敗，請稍後再試。"


def first_text_event(body: str):
    """Return ``(reply_token, text)`` for a leading text message, else None."""
    try:
        payload = json.loads(body or "{}")
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    events = payload.get("events") or []
    if not isinstance(events, list) or not events:
        return None
    event = events[0]
    if not isinstance(event, dict) or event.get("type") != "message":
        return None
    message = event.get("message")
    if not isinstance(message, dict) or message.get("type") != "text" or not event.get("replyToken"):
        return None
    return event["replyToken"], str(message.get("text") or "")


class LineWebhookHandler:
    def __init__(self, settings: Settings, client: httpx.Client, tokens: ChannelTokenProvider):
        self.refresh_url = settings.refresh_progress_url
        self.command = settings.refresh_command
        self.reply_url = settings.line_reply_url
        self.client = client
        self.tokens = tokens

    def __call__(self, event, context=None):
        if method_of(event) == "OPTIONS":
            return preflight_response(POST_METHODS)

        try:
            return self._dispatch(event)
        except Exception:
            logger.exception("LINE webhook failed")
            return text_response(500, "server error", methods=POST_METHODS)

    def _dispatch(self, event):
        try:
            found = first_text_event(body_of(event))
        except ValueError:
            logger.info("Undecodable webhook body ignored")
            found = None
        if found is None:
            return text_response(200, "ignored", methods=POST_METHODS)
        reply_token, text = found

        if text.strip() == self.command:
            reply = self._trigger_refresh()
        else:
            reply = UNKNOWN_COMMAND_REPLY.format(command=self.command)

        try:
            self._reply(reply_token, reply)
        except Exception:
            logger.exception("LINE reply failed")
            return text_response(500, "reply failed", methods=POST_METHODS)
        return text_response(200, "OK", methods=POST_METHODS)

    def _trigger_refresh(self) -> str:
        if not self.refresh_url:
            logger.error("REFRESH_PROGRESS_URL is not configured")
            return REFRESH_FAILED_REPLY
        try:
            resp = self.client.post(self.refresh_url)
        except httpx.HTTPError as e:
            logger.warning("Refresh endpoint unreachable", url=self.refresh_url, error=str(e))
            return REFRESH_FAILED_REPLY
        if resp.is_error:
            logger.warning("Refresh endpoint failed", status=resp.status_code, body=resp.text[:200])
            return REFRESH_FAILED_REPLY
        return resp.text or "OK"

    def _reply(self, reply_token: str, text: str) -> None:
        resp = self.client.post(
            self.reply_url,
            json={"replyToken": reply_token, "messages": [{"type": "text", "text": text}]},
            headers={"Authorization": f"Bearer {self.tokens.get()}"},
        )
        resp.raise_for_status()

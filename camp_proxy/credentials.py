"""LINE channel access token lookup (environment override or AWS Secrets Manager)."""

import json
from typing import Optional

from camp_proxy.config import Settings
from camp_proxy.logging import get_logger

logger = get_logger(__name__)

TOKEN_FIELD = "LINE_CHANNEL_ACCESS_TOKEN"


class TokenUnavailable(Exception):
    pass


class ChannelTokenProvider:
    """Resolve the bearer token once per container and keep it."""

    def __init__(self, settings: Settings, secrets_client=None):
        self._override = settings.line_channel_access_token
        self._secret_id = settings.line_token_secret_id
        self._client = secrets_client
        self._token: Optional[str] = None

    def get(self) -> str:
        if self._override:
            return self._override
        if self._token:
            return self._token
        if not self._secret_id or self._client is None:
            raise TokenUnavailable("No LINE channel token configured")

        resp = self._client.get_secret_value(SecretId=self._secret_id)
        raw = resp.get("SecretString") or ""
        token = raw
        try:
            parsed = json.loads(raw)
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            token = parsed.get(TOKEN_FIELD) or ""
        if not token:
            raise TokenUnavailable(f"Secret {self._secret_id} holds no {TOKEN_FIELD}")

        logger.info("LINE channel token loaded", secret_id=self._secret_id)
        self._token = token
        return token

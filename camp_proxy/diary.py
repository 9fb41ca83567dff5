"""Per-user diary reads, cached per requested date range."""

from datetime import timedelta

from camp_proxy.events import (
    is_truthy_flag,
    json_response,
    method_of,
    preflight_response,
    query_of,
)
from camp_proxy.gateway import GatewayClient, GatewayContractError
from camp_proxy.logging import get_logger, log_cache_operation
from camp_proxy.store import CacheStore, is_fresh, utc_now

logger = get_logger(__name__)


def diary_key(user_id: str, start: str = "", end: str = "") -> str:
    if start or end:
        return f"diary_{user_id}_{start}_{end}"
    return f"diary_{user_id}"


class DiaryHandler:
    def __init__(self, gateway: GatewayClient, store: CacheStore, ttl: timedelta, clock=utc_now):
        self.gateway = gateway
        self.store = store
        self.ttl = ttl
        self.clock = clock

    def __call__(self, event, context=None):
        if method_of(event) == "OPTIONS":
            return preflight_response()

        qs = query_of(event)
        user_id = (qs.get("userId") or "").strip()
        if not user_id:
            return json_response(400, {"ok": False, "error": "userId required"})
        start = (qs.get("start") or "").strip()
        end = (qs.get("end") or "").strip()
        fresh = is_truthy_flag(qs.get("fresh"))
        key = diary_key(user_id, start, end)

        try:
            if not fresh:
                entry = self.store.get(key)
                if is_fresh(entry, self.clock(), self.ttl):
                    log_cache_operation(logger, "read", key, hit=True)
                    return json_response(200, entry.data)
                log_cache_operation(logger, "read", key, hit=False)

            payload, status = self.gateway.get_json("diary", userId=user_id, start=start, end=end)
            if isinstance(payload, dict) and payload.get("ok") is True:
                self.store.put(
                    key,
                    payload,
                    last_update=self.clock().isoformat(),
                    userId=user_id,
                    start=start or None,
                    end=end or None,
                )
                log_cache_operation(logger, "write", key)
            return json_response(status, payload)
        except GatewayContractError as e:
            return json_response(
                502,
                {"ok": False, "error": "Gateway returned non-JSON", "preview": e.preview},
            )
        except Exception:
            logger.exception("Diary read failed", user_id=user_id, cache_key=key)
            return json_response(500, {"ok": False, "error": "Server error"})

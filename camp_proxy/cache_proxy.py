"""TTL-cached reads of whole-camp resources (movement library, training progress)."""

from datetime import timedelta

from camp_proxy.events import json_response, method_of, preflight_response, text_response
from camp_proxy.gateway import GatewayClient, GatewayContractError
from camp_proxy.logging import get_logger, log_cache_operation
from camp_proxy.store import CacheStore, is_fresh, utc_now

logger = get_logger(__name__)

MOVEMENT_LIB = "movementLib"
TRAINING_PROGRESS = "trainingProgress"

REFRESH_METHODS = "POST, OPTIONS"


class CachedResource:
    """One gateway action cached under one fixed key with its own TTL."""

    def __init__(
        self,
        key: str,
        action: str,
        ttl: timedelta,
        store: CacheStore,
        gateway: GatewayClient,
        clock=utc_now,
    ):
        self.key = key
        self.action = action
        self.ttl = ttl
        self.store = store
        self.gateway = gateway
        self.clock = clock

    def read(self):
        entry = self.store.get(self.key)
        if is_fresh(entry, self.clock(), self.ttl):
            log_cache_operation(logger, "read", self.key, hit=True)
            return entry.data
        log_cache_operation(logger, "read", self.key, hit=False)
        return self.refresh()

    def refresh(self):
        payload, _ = self.gateway.get_json(self.action)
        self.store.put(self.key, payload, last_update=self.clock().isoformat())
        log_cache_operation(logger, "write", self.key)
        return payload


class CachedResourceHandler:
    def __init__(self, resource: CachedResource):
        self.resource = resource

    def __call__(self, event, context=None):
        if method_of(event) == "OPTIONS":
            return preflight_response()
        try:
            return json_response(200, self.resource.read())
        except GatewayContractError as e:
            return text_response(502, f"Gateway returned {e.content_type or 'no content-type'}, expected JSON")
        except Exception:
            logger.exception("Cached read failed", cache_key=self.resource.key)
            return text_response(500, "Server error")


class RefreshProgressHandler:
    """Force-refresh training progress and drop the correlated movement library entry."""

    def __init__(self, progress: CachedResource, store: CacheStore, invalidates=(MOVEMENT_LIB,)):
        self.progress = progress
        self.store = store
        self.invalidates = tuple(invalidates)

    def __call__(self, event, context=None):
        method = method_of(event)
        if method == "OPTIONS":
            return preflight_response(REFRESH_METHODS)
        if method != "POST":
            return text_response(405, "Method Not Allowed", methods=REFRESH_METHODS)
        try:
            payload = self.progress.refresh()
            for key in self.invalidates:
                self.store.delete(key)
                log_cache_operation(logger, "delete", key)
        except GatewayContractError as e:
            return text_response(502, f"Refresh failed: {e}", methods=REFRESH_METHODS)
        except Exception:
            logger.exception("Progress refresh failed")
            return text_response(500, "Refresh failed: server error", methods=REFRESH_METHODS)

        logger.info("Training progress refreshed", invalidated=list(self.invalidates))
        message = "訓練進度已更新"
        if isinstance(payload, list):
            message += f"（{len(payload)} 筆）"
        return text_response(200, message, methods=REFRESH_METHODS)

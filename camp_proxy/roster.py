"""Roster (name options) cached per camp and invalidated by the gateway's version token."""

from camp_proxy.events import is_truthy_flag, json_response, method_of, preflight_response, query_of
from camp_proxy.gateway import GatewayClient, GatewayContractError
from camp_proxy.logging import get_logger, log_cache_operation
from camp_proxy.store import CacheStore, utc_now

logger = get_logger(__name__)


def roster_key(camp_id: str) -> str:
    return f"roster_{camp_id}"


class RosterHandler:
    def __init__(self, gateway: GatewayClient, store: CacheStore, clock=utc_now):
        self.gateway = gateway
        self.store = store
        self.clock = clock

    def _meta(self):
        meta, _ = self.gateway.get_json("meta")
        if not isinstance(meta, dict) or not meta.get("campId") or meta.get("rosterVersion") in (None, ""):
            raise GatewayContractError("meta", "application/json", str(meta)[:200], reason="bad meta")
        return str(meta["campId"]), str(meta["rosterVersion"])

    def _names(self):
        names, _ = self.gateway.get_json("names", format="object")
        if not isinstance(names, list):
            raise GatewayContractError("names", "application/json", str(names)[:200], reason="bad format")
        return names

    def __call__(self, event, context=None):
        if method_of(event) == "OPTIONS":
            return preflight_response()
        fresh = is_truthy_flag(query_of(event).get("fresh"))
        try:
            # Never cached: the version token is the only staleness signal
            camp_id, version = self._meta()
            key = roster_key(camp_id)

            if not fresh:
                entry = self.store.get(key)
                if entry is not None and entry.version == version:
                    log_cache_operation(logger, "read", key, hit=True, version=version)
                    return json_response(
                        200,
                        {
                            "ok": True,
                            "campId": camp_id,
                            "version": version,
                            "roster": entry.data,
                            "lastUpdate": entry.last_update,
                            "source": "cache",
                        },
                    )
                log_cache_operation(
                    logger, "read", key, hit=False, version=version,
                    cached_version=entry.version if entry else None,
                )

            roster = self._names()
            last_update = self.clock().isoformat()
            self.store.put(key, roster, last_update=last_update, version=version, campId=camp_id)
            return json_response(
                200,
                {
                    "ok": True,
                    "campId": camp_id,
                    "version": version,
                    "roster": roster,
                    "lastUpdate": last_update,
                    "source": "fresh",
                },
            )
        except GatewayContractError as e:
            return json_response(502, {"ok": False, "error": f"{e.reason} from gateway action={e.action}"})
        except Exception as e:
            logger.exception("Roster read failed")
            return json_response(500, {"ok": False, "error": str(e)})

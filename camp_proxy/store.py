"""DynamoDB-backed cache documents and the append-only report log."""

import json
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from camp_proxy.logging import get_logger

logger = get_logger(__name__)

CACHE_KEY = "cache_key"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass
class CacheEntry:
    key: str
    last_update: str
    data: Any
    version: Optional[str] = None
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_item(cls, item: dict) -> "CacheEntry":
        raw = item.get("data")
        data = json.loads(raw) if isinstance(raw, str) else raw
        version = item.get("version")
        extra = {
            k: v for k, v in item.items() if k not in (CACHE_KEY, "lastUpdate", "data", "version")
        }
        return cls(
            key=item[CACHE_KEY],
            last_update=item.get("lastUpdate", ""),
            data=data,
            version=None if version is None else str(version),
            extra=extra,
        )


def is_fresh(entry: Optional[CacheEntry], now: datetime, ttl: timedelta) -> bool:
    if entry is None:
        return False
    last = parse_timestamp(entry.last_update)
    if last is None:
        return False
    return now - last < ttl


class CacheStore:
    """Flat collection of cache documents keyed by ``cache_key``."""

    def __init__(self, table):
        self.table = table

    def get(self, key: str) -> Optional[CacheEntry]:
        resp = self.table.get_item(Key={CACHE_KEY: key})
        item = resp.get("Item")
        if not item:
            return None
        return CacheEntry.from_item(item)

    def put(self, key: str, data, last_update: str, **fields) -> None:
        """Upsert one document, overwriting only the given attributes."""
        values = {"lastUpdate": last_update, "data": json.dumps(data, ensure_ascii=False)}
        values.update({k: v for k, v in fields.items() if v is not None})

        names = {}
        attr_values = {}
        assignments = []
        for i, (name, value) in enumerate(values.items()):
            names[f"#f{i}"] = name
            attr_values[f":v{i}"] = value
            assignments.append(f"#f{i} = :v{i}")

        self.table.update_item(
            Key={CACHE_KEY: key},
            UpdateExpression="SET " + ", ".join(assignments),
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=attr_values,
        )

    def delete(self, key: str) -> None:
        self.table.delete_item(Key={CACHE_KEY: key})

    def keys(self) -> list:
        out = []
        kwargs = {"ProjectionExpression": "#k", "ExpressionAttributeNames": {"#k": CACHE_KEY}}
        while True:
            resp = self.table.scan(**kwargs)
            out.extend(item[CACHE_KEY] for item in resp.get("Items", []))
            last = resp.get("LastEvaluatedKey")
            if not last:
                return out
            kwargs["ExclusiveStartKey"] = last

    def delete_prefix(self, prefix: str) -> int:
        """Delete every document whose key starts with ``prefix``.

        The scan is a snapshot: a write landing after it survives.
        """
        doomed = [k for k in self.keys() if k.startswith(prefix)]
        if not doomed:
            return 0
        with self.table.batch_writer() as batch:
            for key in doomed:
                batch.delete_item(Key={CACHE_KEY: key})
        return len(doomed)


@dataclass
class PostLogEntry:
    log_date: str
    entry_id: str
    payload: str
    timestamp_utc: str
    timestamp_local: str
    response: str = ""
    error: str = ""

    def to_item(self) -> dict:
        return {
            "log_date": self.log_date,
            "entry_id": self.entry_id,
            "payload": self.payload,
            "response": self.response,
            "error": self.error,
            "timestampUtc": self.timestamp_utc,
            "timestampLocal": self.timestamp_local,
        }


class PostLog:
    """Append-only audit of forwarded writes, one partition per local calendar day."""

    def __init__(self, table, clock=utc_now, utc_offset=timedelta(hours=8)):
        self.table = table
        self.clock = clock
        self.utc_offset = utc_offset

    def new_entry(self, payload: str, user_id: str) -> PostLogEntry:
        now = self.clock()
        local = now.astimezone(timezone(self.utc_offset))
        return PostLogEntry(
            log_date=local.strftime("%Y-%m-%d"),
            entry_id=f"{local:%H:%M:%S.%f}_{user_id or 'anonymous'}",
            payload=payload,
            timestamp_utc=now.isoformat(),
            timestamp_local=local.isoformat(),
        )

    def write(self, entry: PostLogEntry) -> None:
        self.table.put_item(Item=entry.to_item())

    @contextmanager
    def recording(self, payload: str, user_id: str):
        """Yield an entry for the caller to fill; the write is always attempted on exit."""
        entry = self.new_entry(payload, user_id)
        try:
            yield entry
        finally:
            try:
                self.write(entry)
            except Exception:
                logger.exception(
                    "Failed to write post log entry",
                    log_date=entry.log_date,
                    entry_id=entry.entry_id,
                )

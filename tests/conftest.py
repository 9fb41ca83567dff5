"""
Shared fixtures: in-memory DynamoDB tables, a routed httpx mock transport,
a controllable clock and API Gateway event builders.
"""

import base64
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from camp_proxy.app import build_handlers
from camp_proxy.config import Settings

GATEWAY_URL = "https://gateway.test/exec"
REFRESH_URL = "https://proxy.test/refreshProgress"
LINE_REPLY_URL = "https://line.test/v2/bot/message/reply"


class FakeBatchWriter:
    def __init__(self, table):
        self.table = table

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def delete_item(self, Key):
        self.table.batch_deletes += 1
        self.table.delete_item(Key=Key)


class FakeTable:
    """The subset of the boto3 ``Table`` API the stores use."""

    def __init__(self, key_names, page_size=2):
        self.key_names = key_names
        self.page_size = page_size
        self.items = {}
        self.fail_writes = False
        self.scans = 0
        self.batch_deletes = 0

    def _key(self, key):
        return tuple(key[name] for name in self.key_names)

    def get_item(self, Key):
        item = self.items.get(self._key(Key))
        return {"Item": dict(item)} if item else {}

    def put_item(self, Item):
        if self.fail_writes:
            raise RuntimeError("table unavailable")
        self.items[self._key(Item)] = dict(Item)

    def update_item(self, Key, UpdateExpression, ExpressionAttributeNames, ExpressionAttributeValues):
        if self.fail_writes:
            raise RuntimeError("table unavailable")
        assert UpdateExpression.startswith("SET ")
        item = self.items.setdefault(self._key(Key), dict(Key))
        for placeholder, name in ExpressionAttributeNames.items():
            item[name] = ExpressionAttributeValues[":v" + placeholder[2:]]

    def delete_item(self, Key):
        self.items.pop(self._key(Key), None)

    def scan(self, ProjectionExpression=None, ExpressionAttributeNames=None, ExclusiveStartKey=None):
        self.scans += 1
        keys = sorted(self.items)
        if ExclusiveStartKey is not None:
            keys = [k for k in keys if k > self._key(ExclusiveStartKey)]
        page = keys[: self.page_size]
        resp = {"Items": [dict(zip(self.key_names, k)) for k in page]}
        if len(keys) > self.page_size:
            resp["LastEvaluatedKey"] = dict(zip(self.key_names, page[-1]))
        return resp

    def batch_writer(self):
        return FakeBatchWriter(self)

    def seed(self, **item):
        self.items[self._key(item)] = item


class FakeDynamo:
    def __init__(self, settings):
        self.tables = {
            settings.cache_table: FakeTable(("cache_key",)),
            settings.post_log_table: FakeTable(("log_date", "entry_id")),
        }

    def Table(self, name):
        return self.tables[name]


class StubTransport:
    """Route requests by (method, url, action) to canned responses and record them."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def on(self, method, url, action=None, status=200, json_body=None, text=None, headers=None, error=None):
        def respond(request):
            if error is not None:
                raise error
            if json_body is not None:
                return httpx.Response(status, json=json_body, headers=headers)
            return httpx.Response(status, text=text or "", headers=headers)

        self.routes[(method, url, action)] = respond

    def handler(self, request):
        self.requests.append(request)
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        action = request.url.params.get("action")
        route = self.routes.get((request.method, url, action)) or self.routes.get((request.method, url, None))
        if route is None:
            return httpx.Response(404, text="no route")
        return route(request)

    def calls(self, method, url=GATEWAY_URL, action=None):
        return [
            r
            for r in self.requests
            if r.method == method
            and f"{r.url.scheme}://{r.url.host}{r.url.path}" == url
            and (action is None or r.url.params.get("action") == action)
        ]


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        gateway_url=GATEWAY_URL,
        refresh_progress_url=REFRESH_URL,
        line_reply_url=LINE_REPLY_URL,
        line_channel_access_token="line-token",
    )


@pytest.fixture
def clock():
    return Clock(datetime(2025, 9, 1, 3, 30, tzinfo=timezone.utc))


@pytest.fixture
def dynamo(settings):
    return FakeDynamo(settings)


@pytest.fixture
def cache_table(dynamo, settings):
    return dynamo.tables[settings.cache_table]


@pytest.fixture
def log_table(dynamo, settings):
    return dynamo.tables[settings.post_log_table]


@pytest.fixture
def transport():
    return StubTransport()


@pytest.fixture
def http_client(transport):
    client = httpx.Client(transport=httpx.MockTransport(transport.handler), follow_redirects=True)
    yield client
    client.close()


@pytest.fixture
def handlers(settings, dynamo, http_client, clock):
    return build_handlers(settings, dynamodb=dynamo, http_client=http_client, clock=clock)


def make_event(method="GET", query=None, body=None, base64_body=False):
    event = {"requestContext": {"http": {"method": method}}, "queryStringParameters": query}
    if body is not None:
        if not isinstance(body, str):
            body = json.dumps(body, ensure_ascii=False)
        if base64_body:
            body = base64.b64encode(body.encode("utf-8")).decode("ascii")
            event["isBase64Encoded"] = True
        event["body"] = body
    return event

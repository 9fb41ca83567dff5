"""API Gateway (HTTP API, payload v2) event parsing and response building."""

import base64
import json

TRUTHY = {"1", "true", "yes"}


def method_of(event) -> str:
    return event.get("requestContext", {}).get("http", {}).get("method", "GET").upper()


def query_of(event) -> dict:
    return event.get("queryStringParameters") or {}


def body_of(event) -> str:
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        body = base64.b64decode(body).decode("utf-8", "ignore")
    return body


def is_truthy_flag(value) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY


def _cors_headers(methods: str) -> dict:
    return {
        "access-control-allow-origin": "*",
        "access-control-allow-methods": methods,
        "access-control-allow-headers": "Content-Type",
    }


def text_response(status, body, methods="GET, OPTIONS", content_type="text/plain"):
    return {
        "statusCode": status,
        "headers": {
            "content-type": f"{content_type}; charset=utf-8",
            "cache-control": "no-store",
            **_cors_headers(methods),
        },
        "body": body,
    }


def json_response(status, obj, methods="GET, OPTIONS"):
    return text_response(
        status,
        json.dumps(obj, ensure_ascii=False),
        methods=methods,
        content_type="application/json",
    )


def preflight_response(methods="GET, OPTIONS"):
    return {"statusCode": 204, "headers": _cors_headers(methods), "body": ""}

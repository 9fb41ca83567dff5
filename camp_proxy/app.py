"""Lambda entrypoints.

Each function below is deployed as its own Lambda behind an API Gateway HTTP
API route; the handler string is ``camp_proxy.app.<name>``. Clients, tables
and handlers are built once per container on first invocation.
"""

from dataclasses import dataclass
from functools import lru_cache

import boto3

from camp_proxy.cache_proxy import (
    MOVEMENT_LIB,
    TRAINING_PROGRESS,
    CachedResource,
    CachedResourceHandler,
    RefreshProgressHandler,
)
from camp_proxy.config import Settings
from camp_proxy.credentials import ChannelTokenProvider
from camp_proxy.diary import DiaryHandler
from camp_proxy.gateway import GatewayClient, build_http_client
from camp_proxy.line_bot import LineWebhookHandler
from camp_proxy.logging import configure_logging
from camp_proxy.report import DailyReportHandler, RelayHandler
from camp_proxy.roster import RosterHandler
from camp_proxy.store import CacheStore, PostLog, utc_now


@dataclass
class Handlers:
    relay: RelayHandler
    movement_lib: CachedResourceHandler
    training_progress: CachedResourceHandler
    refresh_progress: RefreshProgressHandler
    diary: DiaryHandler
    roster: RosterHandler
    daily_report: DailyReportHandler
    line_webhook: LineWebhookHandler


def build_handlers(settings: Settings, dynamodb=None, http_client=None, secrets_client=None, clock=utc_now):
    if dynamodb is None:
        dynamodb = boto3.resource("dynamodb", region_name=settings.aws_region)
    if http_client is None:
        http_client = build_http_client(settings)
    if secrets_client is None and settings.line_token_secret_id:
        secrets_client = boto3.client("secretsmanager", region_name=settings.aws_region)

    cache = CacheStore(dynamodb.Table(settings.cache_table))
    post_log = PostLog(
        dynamodb.Table(settings.post_log_table),
        clock=clock,
        utc_offset=settings.local_offset,
    )
    gateway = GatewayClient(settings, http_client)

    movement = CachedResource(MOVEMENT_LIB, MOVEMENT_LIB, settings.movement_lib_ttl, cache, gateway, clock)
    progress = CachedResource(
        TRAINING_PROGRESS, TRAINING_PROGRESS, settings.training_progress_ttl, cache, gateway, clock
    )

    return Handlers(
        relay=RelayHandler(gateway),
        movement_lib=CachedResourceHandler(movement),
        training_progress=CachedResourceHandler(progress),
        refresh_progress=RefreshProgressHandler(progress, cache),
        diary=DiaryHandler(gateway, cache, settings.diary_ttl, clock),
        roster=RosterHandler(gateway, cache, clock),
        daily_report=DailyReportHandler(gateway, post_log, cache),
        line_webhook=LineWebhookHandler(
            settings, http_client, ChannelTokenProvider(settings, secrets_client)
        ),
    )


@lru_cache(maxsize=1)
def _handlers() -> Handlers:
    settings = Settings()
    configure_logging(settings)
    return build_handlers(settings)


def relay(event, context):
    return _handlers().relay(event, context)


def movement_lib(event, context):
    return _handlers().movement_lib(event, context)


def training_progress(event, context):
    return _handlers().training_progress(event, context)


def refresh_progress(event, context):
    return _handlers().refresh_progress(event, context)


def diary(event, context):
    return _handlers().diary(event, context)


def roster(event, context):
    return _handlers().roster(event, context)


def daily_report(event, context):
    return _handlers().daily_report(event, context)


def line_webhook(event, context):
    return _handlers().line_webhook(event, context)

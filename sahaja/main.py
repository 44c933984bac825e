"""Client entrypoint — builds the shared cache, HTTP transport and services."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta

import httpx
from redis.asyncio import Redis

from sahaja.config import Settings, get_settings
from sahaja.middleware.logging import configure_structured_logging, event_hooks
from sahaja.services.api_client import ApiClient
from sahaja.services.cache_store import TTLCacheStore
from sahaja.services.crop_report_service import CropReportService
from sahaja.services.escalation import EscalationWindow
from sahaja.services.farmer_service import FarmerService
from sahaja.services.progression import StageProgressionEngine
from sahaja.services.query_service import QueryService
from sahaja.services.upload_flow import StagePhotoUpload

logger = logging.getLogger("sahaja")


@dataclass(slots=True)
class SahajaApp:
    """Process-scoped container; one per application root."""

    settings: Settings
    http: httpx.AsyncClient
    cache: TTLCacheStore
    client: ApiClient
    engine: StageProgressionEngine
    crop_reports: CropReportService
    queries: QueryService
    farmers: FarmerService
    redis: Redis | None = None

    def stage_upload(self, report_id: str) -> StagePhotoUpload:
        return StagePhotoUpload(self.crop_reports, report_id)

    def logout(self) -> None:
        """Drop every cached response and tracked report view."""
        self.client.clear_cache()
        self.engine.clear()


def build_app(
    settings: Settings,
    http: httpx.AsyncClient,
    redis: Redis | None = None,
    cache: TTLCacheStore | None = None,
) -> SahajaApp:
    cache = cache or TTLCacheStore(ttl_seconds=settings.cache_ttl_seconds)
    client = ApiClient(http, cache, timeout_seconds=settings.request_timeout_seconds)
    engine = StageProgressionEngine()
    window = EscalationWindow(min_age=timedelta(seconds=settings.escalation_min_age_seconds))
    return SahajaApp(
        settings=settings,
        http=http,
        cache=cache,
        client=client,
        engine=engine,
        crop_reports=CropReportService(client, engine),
        queries=QueryService(
            client,
            window,
            redis,
            summary_timeout_seconds=settings.summary_timeout_seconds,
            snapshot_ttl_seconds=int(settings.cache_ttl_seconds),
        ),
        farmers=FarmerService(client, timeout_seconds=settings.farmer_lookup_timeout_seconds),
        redis=redis,
    )


@asynccontextmanager
async def lifespan(settings: Settings | None = None) -> AsyncIterator[SahajaApp]:
    """Client startup / shutdown lifecycle.

    Startup:
      1. Initialize structured logging
      2. Open the pooled HTTP transport against ``{api_base_url}{api_prefix}``
      3. Connect to Redis when ``redis_url`` is set

    Shutdown:
      1. Wait for fire-and-forget admin notifications
      2. Close Redis and the HTTP transport
    """
    settings = settings or get_settings()
    configure_structured_logging()
    logger.info(
        "Sahaja client starting",
        extra={"api_root": settings.api_root, "cache_ttl_seconds": settings.cache_ttl_seconds},
    )

    http = httpx.AsyncClient(
        base_url=settings.api_root,
        timeout=settings.request_timeout_seconds,
        event_hooks=event_hooks(),
    )
    redis: Redis | None = None
    try:
        if settings.redis_url:
            redis = Redis.from_url(settings.redis_url, decode_responses=True)
            await redis.ping()
    except Exception as exc:
        logger.exception("startup failure", extra={"error": str(exc)})
        if redis is not None:
            await redis.aclose()
        await http.aclose()
        raise

    app = build_app(settings, http, redis)
    try:
        yield app
    finally:
        logger.info("Sahaja client shutting down")
        await app.queries.aclose()
        if redis is not None:
            await redis.aclose()
        await http.aclose()

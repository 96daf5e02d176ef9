"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException

from poster_pipeline.compositor import FontConfig, PosterCompositor, warn_missing_asset
from poster_pipeline.templates import PosterCatalog
from sevadar.config import get_settings
from sevadar.db import DbClient, InMemoryDbClient, ProfileRecord
from sevadar.db_postgres import PostgresDbClient
from sevadar.notifications import FirebasePushNotifier, InMemoryPushNotifier, PushNotifier
from sevadar.queue import InMemoryRenderQueue, RedisRenderQueue, RenderQueue
from sevadar.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_queue_client: RenderQueue | None = None
_poster_catalog: PosterCatalog | None = None
_compositor: PosterCompositor | None = None
_push_notifier: PushNotifier | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    return _storage_client


def get_queue_client() -> RenderQueue:
    """
    Return a singleton queue client for dispatching render jobs to workers.
    """
    global _queue_client
    if _queue_client:
        return _queue_client

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _queue_client = RedisRenderQueue(
            url=settings.redis_url,
            queue_key=settings.redis_queue_key,
        )
    else:
        _queue_client = InMemoryRenderQueue()
    return _queue_client


def get_poster_catalog() -> PosterCatalog:
    global _poster_catalog
    if _poster_catalog:
        return _poster_catalog
    settings = get_settings()
    _poster_catalog = PosterCatalog(
        settings.poster_catalog_path, tz_name=settings.campaign_timezone
    )
    return _poster_catalog


def get_compositor() -> PosterCompositor:
    global _compositor
    if _compositor:
        return _compositor
    settings = get_settings()
    _compositor = PosterCompositor(
        fonts=FontConfig(
            name_font_path=settings.name_font_path,
            status_font_path=settings.status_font_path,
        ),
        admin_footer_path=settings.admin_footer_path,
        image_timeout=settings.image_timeout_seconds,
    )
    for path in _compositor.missing_assets():
        warn_missing_asset(path)
    return _compositor


def get_push_notifier() -> PushNotifier:
    global _push_notifier
    if _push_notifier:
        return _push_notifier
    settings = get_settings()
    if settings.use_in_memory_backends or not settings.firebase_service_account_json:
        _push_notifier = InMemoryPushNotifier()
    else:
        _push_notifier = FirebasePushNotifier(settings.firebase_service_account_json)
    return _push_notifier


def get_current_user(
    x_user_id: str | None = Header(None),
    db: DbClient = Depends(get_db_client),
) -> ProfileRecord:
    """
    Resolve the caller from the `X-User-Id` header set by the auth gateway.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    profile = db.get_profile(x_user_id)
    if profile is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return profile


def require_admin(user: ProfileRecord = Depends(get_current_user)) -> ProfileRecord:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user

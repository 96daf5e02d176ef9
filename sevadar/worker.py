"""
Background worker that renders queued posters.

Run with `python -m sevadar.worker`; it blocks on the render queue, composes
each poster and uploads the JPEG to object storage.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from poster_pipeline.compositor import PosterCompositor
from poster_pipeline.templates import PosterCatalog
from sevadar.db import DbClient, RenderJobRecord
from sevadar.dependencies import (
    get_compositor,
    get_db_client,
    get_poster_catalog,
    get_queue_client,
    get_storage_client,
)
from sevadar.posters import render_template
from sevadar.queue import RenderQueue
from sevadar.storage import StorageClient
from shared.types import RenderStatus

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

STALE_LOCK_SECONDS = 900


def output_path_for(job: RenderJobRecord) -> str:
    return f"posters/{job.user_id}/{job.template_id}/{job.job_id}.jpg"


def process_job(
    job: RenderJobRecord,
    db: DbClient,
    *,
    storage: Optional[StorageClient] = None,
    catalog: Optional[PosterCatalog] = None,
    compositor: Optional[PosterCompositor] = None,
) -> None:
    storage = storage or get_storage_client()
    catalog = catalog or get_poster_catalog()
    compositor = compositor or get_compositor()

    template = catalog.get(job.template_id)
    if template is None:
        logger.warning("[%s] Poster %s no longer in catalog", job.job_id, job.template_id)
        db.update_render_job(
            job.job_id,
            status=RenderStatus.ERROR,
            stage="ERROR",
            error=f"Poster {job.template_id} not found",
        )
        return

    db.update_render_job(job.job_id, status=RenderStatus.RENDERING, stage="COMPOSING")
    try:
        poster = render_template(compositor, catalog, template, job.params)
        if not poster.ok:
            logger.warning("[%s] Render failed: %s", job.job_id, poster.error)
            db.update_render_job(
                job.job_id,
                status=RenderStatus.ERROR_IMAGE_LOAD,
                stage="ERROR",
                error=poster.error,
            )
            return

        db.update_render_job(job.job_id, stage="UPLOADING")
        path = output_path_for(job)
        storage.put_bytes(path, poster.content, poster.mime_type)
        db.update_render_job(
            job.job_id, status=RenderStatus.SUCCESS, stage="SUCCESS", output_path=path
        )
        logger.info(
            "[%s] Rendered %s (%s) to %s", job.job_id, template.id, ",".join(poster.layers), path
        )
    except Exception as e:
        logger.exception("[%s] Render job failed: %s", job.job_id, e)
        db.update_render_job(
            job.job_id, status=RenderStatus.ERROR, stage="ERROR", error=str(e)
        )


def process_next(
    *,
    db: Optional[DbClient] = None,
    queue: Optional[RenderQueue] = None,
    block: bool = True,
    timeout: Optional[int] = None,
    **process_kwargs,
) -> bool:
    """
    Fetch and process one job from the queue (or DB fallback). Returns True if processed.
    """
    db = db or get_db_client()
    queue = queue or get_queue_client()

    job_id = queue.dequeue(block=block, timeout=timeout) if queue else None
    job: Optional[RenderJobRecord] = None

    if job_id:
        if db.get_render_job(job_id) is None:
            logger.warning("Received job_id %s from queue but no DB record found", job_id)
            return False
        # Claim the job so other workers skip it.
        job = db.claim_render_job(job_id)
        if not job:
            logger.info("Job %s already claimed elsewhere", job_id)
            return False
    else:
        # Pick up WAITING jobs that were never queued or were requeued.
        job = db.claim_next_waiting_render_job()
        if not job:
            return False

    process_job(job, db, **process_kwargs)
    return True


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    """
    Simple polling loop that blocks on the queue. Intended to be run under systemd/supervisor.
    """
    db = get_db_client()
    queue = get_queue_client()
    while True:
        try:
            requeued = db.requeue_stale_render_jobs(lock_timeout_seconds=STALE_LOCK_SECONDS)
            if requeued:
                logger.info(
                    "Requeued %d stale render jobs (%d queued)", requeued, queue.pending()
                )
        except Exception:
            logger.exception("Failed to requeue stale render jobs")
        processed = process_next(db=db, queue=queue, block=True, timeout=int(poll_interval_seconds))
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    run_loop()

"""
Admin Routes for Background Jobs Management
Provides endpoints to monitor and control the popularity jobs

Features:
- Manual job triggers (decay, rebuild, catalog sync)
- Job status monitoring
- Pause/resume jobs
- Cache statistics

Mounted only when ENABLE_ADMIN_ROUTES=true; put it behind the gateway's auth.
"""

from fastapi import APIRouter, HTTPException, status
from apscheduler.jobstores.base import JobLookupError
from moviediary.services.background_jobs import background_jobs
from moviediary.utils.cache import get_cache_stats
from moviediary.services.rank_cache import get_rank_cache
from datetime import datetime, timezone

router = APIRouter(prefix="/api/admin", tags=["Admin - Background Jobs"])

SCHEDULED_JOBS = ['popularity_decay', 'popularity_rebuild']

_TRIGGERS = {
    'decay': ('popularity_decay', lambda: background_jobs.decay_popularity()),
    'rebuild': ('popularity_rebuild', lambda: background_jobs.rebuild_popularity()),
    'sync': ('catalog_sync', lambda: background_jobs.sync_catalog()),
}


@router.post("/jobs/trigger/{job_name}", status_code=status.HTTP_200_OK)
def trigger_job(job_name: str):
    """
    Manually run a job now

    Valid job names:
    - decay: lower every ranked score by one step
    - rebuild: reload the ranking from stored popularity
    - sync: pull new movies from the catalog
    """
    if job_name not in _TRIGGERS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid job. Must be one of: {', '.join(_TRIGGERS)}"
        )

    job_id, run = _TRIGGERS[job_name]
    result = run()
    stats = background_jobs.job_stats[job_id]
    if stats['status'] == 'failed':
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Job '{job_id}' failed: {stats['error']}"
        )

    return {
        "message": f"Job '{job_id}' completed",
        "job": job_id,
        "result": result,
        "triggered_at": datetime.now(timezone.utc).isoformat()
    }


@router.get("/jobs/status", status_code=status.HTTP_200_OK)
def get_jobs_status():
    """
    Get status of all background jobs

    Returns:
    - Job IDs and names
    - Next run times
    - Last execution times and results
    - Current status (idle/running/success/failed)
    """
    stats = background_jobs.get_job_stats()
    return {
        "scheduler_running": stats['scheduler_running'],
        "timezone": stats['timezone'],
        "jobs": stats['jobs'],
        "checked_at": datetime.now(timezone.utc).isoformat()
    }


@router.post("/jobs/pause/{job_id}", status_code=status.HTTP_200_OK)
def pause_job(job_id: str):
    """Pause a scheduled job (popularity_decay or popularity_rebuild)"""
    _ensure_scheduled_job(job_id)
    try:
        background_jobs.pause_job(job_id)
    except JobLookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Job '{job_id}' is not scheduled")
    return {
        "message": f"Job '{job_id}' paused successfully",
        "job_id": job_id,
        "paused_at": datetime.now(timezone.utc).isoformat()
    }


@router.post("/jobs/resume/{job_id}", status_code=status.HTTP_200_OK)
def resume_job(job_id: str):
    """Resume a paused job"""
    _ensure_scheduled_job(job_id)
    try:
        background_jobs.resume_job(job_id)
    except JobLookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Job '{job_id}' is not scheduled")
    return {
        "message": f"Job '{job_id}' resumed successfully",
        "job_id": job_id,
        "resumed_at": datetime.now(timezone.utc).isoformat()
    }


@router.get("/cache/stats", status_code=status.HTTP_200_OK)
def cache_stats():
    """Page cache statistics and the current popularity ranking"""
    rank_cache = get_rank_cache()
    top = rank_cache.top_n(10)
    return {
        "caches": get_cache_stats(),
        "ranking": [{"movie_id": movie_id, "score": rank_cache.score(movie_id)} for movie_id in top],
        "checked_at": datetime.now(timezone.utc).isoformat()
    }


def _ensure_scheduled_job(job_id: str):
    if job_id not in SCHEDULED_JOBS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid job_id. Must be one of: {', '.join(SCHEDULED_JOBS)}"
        )

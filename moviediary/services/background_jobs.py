"""
Background Jobs Service for popularity ranking maintenance
Runs the daily decay and rebuild of the rank cache off the request threads

Features:
- Scheduled jobs using APScheduler (cron expressions from the environment)
- Configurable timezone
- Job monitoring and statistics
- Manual triggers, pause and resume
"""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session
from moviediary.database import get_db_session
from moviediary.services.catalog_client import CatalogClient
from moviediary.services.catalog_sync import CatalogSyncEngine
from moviediary.services.movie_store import MovieStore
from moviediary.services.popularity import PopularityEngine
from moviediary.services.rank_cache import get_rank_cache
from datetime import datetime
import logging
import os
from typing import Callable, Dict
from pytz import timezone

logger = logging.getLogger(__name__)

DEFAULT_DECAY_CRON = "0 3 * * *"    # 03:00 daily
DEFAULT_REBUILD_CRON = "0 4 * * *"  # 04:00 daily, after decay

JOB_IDS = ('popularity_decay', 'popularity_rebuild', 'catalog_sync')


class BackgroundJobService:
    """
    Manages scheduled popularity jobs

    Jobs:
    - popularity_decay: lower every ranked score (POPULARITY_DECAY_CRON)
    - popularity_rebuild: reload ranking from stored popularity (POPULARITY_REBUILD_CRON)
    - catalog_sync: manual trigger only, one hydration pass

    Usage:
        jobs = BackgroundJobService()
        jobs.start()  # Start all scheduled jobs
        jobs.shutdown()  # Stop all jobs gracefully
    """

    def __init__(self, session_factory: Callable[[], Session] = get_db_session, rank_cache=None):
        """Initialize scheduler with timezone configuration"""
        tz_name = os.getenv("TIMEZONE", "UTC")
        self.timezone = timezone(tz_name)
        self.scheduler = BackgroundScheduler(timezone=self.timezone)
        self.session_factory = session_factory
        self._rank_cache = rank_cache
        self.decay_cron = os.getenv("POPULARITY_DECAY_CRON", DEFAULT_DECAY_CRON)
        self.rebuild_cron = os.getenv("POPULARITY_REBUILD_CRON", DEFAULT_REBUILD_CRON)

        # Track job execution statistics
        self.job_stats = {
            job_id: {'last_run': None, 'status': 'idle', 'error': None, 'result': None}
            for job_id in JOB_IDS
        }

    @property
    def rank_cache(self):
        return self._rank_cache if self._rank_cache is not None else get_rank_cache()

    def decay_runs_before_rebuild(self, decay_trigger: CronTrigger, rebuild_trigger: CronTrigger) -> bool:
        """True when, starting from today's midnight, decay fires strictly before rebuild"""
        midnight = datetime.now(self.timezone).replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
        midnight = self.timezone.localize(midnight)
        decay_at = decay_trigger.get_next_fire_time(None, midnight)
        rebuild_at = rebuild_trigger.get_next_fire_time(None, midnight)
        return decay_at is not None and rebuild_at is not None and decay_at < rebuild_at

    def register_jobs(self):
        """Register the cron-triggered jobs without starting the scheduler"""
        decay_trigger = CronTrigger.from_crontab(self.decay_cron, timezone=self.timezone)
        rebuild_trigger = CronTrigger.from_crontab(self.rebuild_cron, timezone=self.timezone)
        if not self.decay_runs_before_rebuild(decay_trigger, rebuild_trigger):
            logger.warning(
                f"Popularity decay ({self.decay_cron}) does not run before rebuild ({self.rebuild_cron}); "
                f"rebuilt scores will be decayed the same day"
            )

        self.scheduler.add_job(
            func=self.decay_popularity,
            trigger=decay_trigger,
            id='popularity_decay',
            name='Decay popularity ranking',
            replace_existing=True,
            max_instances=1  # Prevent concurrent runs
        )
        logger.info(f"✓ Scheduled: Decay popularity ranking ({self.decay_cron})")

        self.scheduler.add_job(
            func=self.rebuild_popularity,
            trigger=rebuild_trigger,
            id='popularity_rebuild',
            name='Rebuild popularity ranking from stored popularity',
            replace_existing=True,
            max_instances=1
        )
        logger.info(f"✓ Scheduled: Rebuild popularity ranking ({self.rebuild_cron})")

    def start(self):
        """
        Start all scheduled background jobs

        Jobs are only started if ENABLE_BACKGROUND_JOBS=true in environment
        """
        if os.getenv("ENABLE_BACKGROUND_JOBS", "true").lower() != "true":
            logger.info("Background jobs disabled via ENABLE_BACKGROUND_JOBS environment variable")
            return

        self.register_jobs()
        self.scheduler.start()
        logger.info("=" * 60)
        logger.info("🚀 Background jobs started successfully")
        logger.info(f"   Timezone: {self.timezone}")
        logger.info(f"   Active jobs: {len(self.scheduler.get_jobs())}")
        logger.info("=" * 60)

    def shutdown(self):
        """Shutdown scheduler gracefully"""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            logger.info("Background jobs stopped gracefully")

    def get_job_stats(self) -> Dict:
        """
        Get statistics for all jobs including next run times

        Returns:
            Dict with job information and execution history
        """
        jobs_info = []
        scheduled = {job.id: job for job in self.scheduler.get_jobs()}
        for job_id, stats in self.job_stats.items():
            job = scheduled.get(job_id)
            next_run = getattr(job, 'next_run_time', None) if job else None
            jobs_info.append({
                'id': job_id,
                'name': job.name if job else job_id,
                'scheduled': job is not None,
                'next_run': next_run.isoformat() if next_run else None,
                'last_run': stats.get('last_run'),
                'status': stats.get('status', 'idle'),
                'error': stats.get('error'),
                'result': stats.get('result')
            })

        return {
            'scheduler_running': self.scheduler.running,
            'timezone': str(self.timezone),
            'jobs': jobs_info
        }

    # ============================================
    # Main Job Methods
    # ============================================

    def decay_popularity(self):
        """Apply one decay step to every ranked movie"""
        return self._run('popularity_decay', lambda db: PopularityEngine(MovieStore(db), self.rank_cache).decay())

    def rebuild_popularity(self):
        """Replace the ranking with the top stored movies by popularity"""
        return self._run('popularity_rebuild', lambda db: PopularityEngine(MovieStore(db), self.rank_cache).rebuild())

    def sync_catalog(self):
        """Run one catalog hydration pass"""
        def job(db):
            store = MovieStore(db)
            return CatalogSyncEngine(CatalogClient(), store).sync_new_records()
        return self._run('catalog_sync', job)

    def _run(self, job_id: str, work: Callable[[Session], int]):
        """
        Run a job with its own session, recording status and timing.
        Failures are logged and recorded, never raised into the scheduler.
        """
        self.job_stats[job_id]['status'] = 'running'
        self.job_stats[job_id]['error'] = None

        db: Session = self.session_factory()
        start_time = datetime.now()

        try:
            logger.info(f"[{job_id}] Starting...")
            result = work(db)
            elapsed = (datetime.now() - start_time).total_seconds()

            logger.info(f"[{job_id}] ✓ Completed in {elapsed:.2f}s - {result} movies")

            self.job_stats[job_id]['status'] = 'success'
            self.job_stats[job_id]['result'] = result
            self.job_stats[job_id]['last_run'] = datetime.now().isoformat()
            return result

        except Exception as e:
            db.rollback()
            elapsed = (datetime.now() - start_time).total_seconds()
            error_msg = str(e)

            logger.error(f"[{job_id}] ✗ Failed after {elapsed:.2f}s: {error_msg}", exc_info=True)

            self.job_stats[job_id]['status'] = 'failed'
            self.job_stats[job_id]['error'] = error_msg
            self.job_stats[job_id]['last_run'] = datetime.now().isoformat()
            return None

        finally:
            db.close()

    def pause_job(self, job_id: str):
        """Pause a scheduled job"""
        self.scheduler.pause_job(job_id)
        logger.info(f"⏸ Paused job: {job_id}")

    def resume_job(self, job_id: str):
        """Resume a paused job"""
        self.scheduler.resume_job(job_id)
        logger.info(f"▶ Resumed job: {job_id}")


# Global singleton instance
background_jobs = BackgroundJobService()

"""Review job bookkeeping in the local cache."""

import time
from dataclasses import dataclass

import structlog

from critique.core.annotations.store import METADATA_KEY_PREFIX, metadata_cache_key
from critique.storage.local_cache import LocalCache

logger = structlog.get_logger(__name__)

CURRENT_JOB_KEY = "current_job_id"


def new_job_id() -> str:
    """Generate a job id of the form job-<epoch milliseconds>."""
    return f"job-{int(time.time() * 1000)}"


@dataclass
class JobInfo:
    """Information about a job cached locally."""

    job_id: str
    screenshot_count: int
    is_current: bool = False


class JobManager:
    """
    Track which review job is active and which jobs have cached screenshots.

    The current job id is remembered in the cache so that successive CLI
    invocations keep annotating the same session.
    """

    def __init__(self, cache: LocalCache) -> None:
        self.cache = cache

    async def current_job_id(self) -> str:
        """
        Return the active job id, starting a new job if none is remembered.

        Returns:
            The active job id
        """
        job_id = await self.cache.get(CURRENT_JOB_KEY)
        if job_id:
            return job_id
        return await self.start_new_job()

    async def start_new_job(self) -> str:
        """Start a fresh job and make it current."""
        job_id = new_job_id()
        await self.cache.set(CURRENT_JOB_KEY, job_id)
        logger.info("job_started", job_id=job_id)
        return job_id

    async def use_job(self, job_id: str) -> None:
        """Make an existing or external job id current."""
        await self.cache.set(CURRENT_JOB_KEY, job_id)
        logger.info("job_selected", job_id=job_id)

    async def list_jobs(self) -> list[JobInfo]:
        """
        List jobs that have screenshot metadata cached locally.

        Returns:
            JobInfo entries sorted by job id, newest first
        """
        current = await self.cache.get(CURRENT_JOB_KEY)
        jobs = []
        for key in await self.cache.keys(METADATA_KEY_PREFIX):
            job_id = key[len(METADATA_KEY_PREFIX) :]
            records = await self.cache.get_json(key, default=[])
            count = len(records) if isinstance(records, list) else 0
            jobs.append(JobInfo(job_id=job_id, screenshot_count=count, is_current=job_id == current))
        return sorted(jobs, key=lambda j: j.job_id, reverse=True)

    async def forget_job(self, job_id: str) -> bool:
        """
        Drop a job's cached metadata. Remote images are left untouched.

        Returns:
            True if metadata was removed, False if none existed
        """
        removed = await self.cache.remove(metadata_cache_key(job_id))
        if await self.cache.get(CURRENT_JOB_KEY) == job_id:
            await self.cache.remove(CURRENT_JOB_KEY)
        logger.info("job_forgotten", job_id=job_id, removed=removed)
        return removed

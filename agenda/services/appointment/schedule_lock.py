# agenda/services/appointment/schedule_lock.py
"""
Mutual exclusion per (professional, calendar day).

The availability check and the write that follows must run inside one scope,
otherwise two requests can both see a free slot and both book it.
"""
from contextlib import contextmanager, ExitStack
from datetime import date, datetime
from functools import lru_cache
from typing import Iterable, Iterator, Tuple, Union
from uuid import UUID
import logging
import threading

from agenda.config.redis import RedisKeys
from agenda.config.settings import get_settings
from agenda.services.scheduling.errors import ScheduleBusy

logger = logging.getLogger(__name__)

LockKey = Tuple[UUID, date]


def lock_key(professional_id: UUID, day: Union[date, datetime]) -> LockKey:
    if isinstance(day, datetime):
        day = day.date()
    return professional_id, day


class ScheduleLockManager:
    """Hands out day locks from an in-process registry or from Redis"""

    def __init__(
            self,
            backend: str = "local",
            redis_client=None,
            timeout: int = 10,
            blocking_timeout: int = 5
    ):
        if backend not in ("local", "redis"):
            raise ValueError(f"Unknown schedule lock backend: {backend}")
        if backend == "redis" and redis_client is None:
            raise ValueError("Redis lock backend needs a redis client")

        self.backend = backend
        self.redis_client = redis_client
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout

        self._registry_lock = threading.Lock()
        self._local_locks = {}

    def _local_lock(self, key: LockKey) -> threading.Lock:
        with self._registry_lock:
            if key not in self._local_locks:
                self._local_locks[key] = threading.Lock()
            return self._local_locks[key]

    @contextmanager
    def _acquire(self, key: LockKey) -> Iterator[None]:
        professional_id, day = key

        if self.backend == "local":
            lock = self._local_lock(key)
            if not lock.acquire(timeout=self.blocking_timeout):
                raise ScheduleBusy(
                    "Schedule is being changed by another request, try again",
                    professional_id=professional_id, day=day
                )
            try:
                yield
            finally:
                lock.release()
            return

        name = RedisKeys.schedule_lock(professional_id, day)
        lock = self.redis_client.lock(name, timeout=self.timeout, blocking_timeout=self.blocking_timeout)
        if not lock.acquire():
            raise ScheduleBusy(
                "Schedule is being changed by another request, try again",
                professional_id=professional_id, day=day
            )
        try:
            yield
        finally:
            try:
                lock.release()
            except Exception as e:
                # Lock expired while held; the write already happened
                logger.warning(f"Could not release schedule lock {name}: {e}")

    @contextmanager
    def hold(self, keys: Iterable[LockKey]) -> Iterator[None]:
        """Hold every distinct key; sorted acquisition keeps concurrent holders deadlock-free"""
        ordered = sorted(set(keys), key=lambda item: (str(item[0]), item[1]))
        with ExitStack() as stack:
            for key in ordered:
                stack.enter_context(self._acquire(key))
            yield


@lru_cache()
def get_schedule_lock_manager() -> ScheduleLockManager:
    """Process-wide lock manager built from settings"""
    settings = get_settings()
    redis_client = None

    if settings.SCHEDULE_LOCK_BACKEND == "redis":
        from agenda.config.redis import get_redis
        redis_client = get_redis()

    logger.info(f"Using {settings.SCHEDULE_LOCK_BACKEND} schedule locks")
    return ScheduleLockManager(
        backend=settings.SCHEDULE_LOCK_BACKEND,
        redis_client=redis_client,
        timeout=settings.SCHEDULE_LOCK_TIMEOUT_SECONDS,
        blocking_timeout=settings.SCHEDULE_LOCK_BLOCKING_TIMEOUT_SECONDS,
    )

"""Background worker for work that runs after the HTTP response.

Jobs are queued on a small thread pool and each one runs inside the ordering
domain context with its order bound to every log line. A job handles its own
failures; whatever still escapes is logged here and does not affect any
other job.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait

import structlog

from ordering.utils.logging import bind_order_context, clear_order_context

logger = structlog.get_logger(__name__)


class BackgroundWorker:
    def __init__(self, domain, max_workers: int = 4) -> None:
        self._domain = domain
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="post-payment")
        self._pending: set[Future] = set()
        self._guard = threading.Lock()

    def submit(self, job_name: str, job, order_id: str, *args) -> Future:
        future = self._executor.submit(self._run, job_name, job, order_id, *args)
        with self._guard:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        logger.debug("Background job queued", job=job_name, order_id=order_id)
        return future

    def _run(self, job_name: str, job, order_id: str, *args) -> None:
        bind_order_context(order_id=order_id, job=job_name)
        try:
            with self._domain.domain_context():
                job(order_id, *args)
        except Exception:
            logger.exception("Background job failed")
        finally:
            clear_order_context()

    def _forget(self, future: Future) -> None:
        with self._guard:
            self._pending.discard(future)

    @property
    def pending(self) -> int:
        with self._guard:
            return len(self._pending)

    def drain(self, timeout: float | None = 10.0) -> bool:
        """Wait until every queued job has finished.

        Returns False when jobs were still running after ``timeout`` seconds.
        """
        while True:
            with self._guard:
                pending = set(self._pending)
            if not pending:
                return True
            _, not_done = wait(pending, timeout=timeout)
            if not_done:
                return False

    def shutdown(self, wait_for_jobs: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_jobs)
        logger.info("Background worker stopped")

"""
Scheduler des jobs périodiques.

À chaque tick, l'instance qui obtient le verrou consultatif évalue les jobs
et lance ceux qui sont dus, chacun dans sa propre tâche asyncio. Une tâche
de job capture toutes ses erreurs : un handler en échec ne peut pas
interrompre la boucle de ticks ni les autres jobs.

Après chaque tentative, succès ou échec, last_run et next_run avancent :
un job en échec n'est donc jamais relancé en boucle serrée.
"""

import asyncio
from datetime import datetime
from typing import Callable, Optional

from loguru import logger

from mediabroker.core.entities.job import JobRun, JobRunStatus, ScheduledJob
from mediabroker.core.exceptions import JobNotFoundError, SchedulerHandlerError
from mediabroker.core.ports.locks import IAdvisoryLock
from mediabroker.core.ports.repositories import IJobRepository
from mediabroker.utils.helpers import truncate_message, utc_now

from .cron import compute_next_run, is_cron_schedule
from .dataclasses import JobMetrics, TickResult
from .definitions import JobHandler

# Écart toléré entre next_run stocké et l'occurrence cron attendue
DRIFT_TOLERANCE_SECONDS = 60


class JobScheduler:
    """
    Scheduler à tick périodique, sérialisé entre instances.

    Utilisation typique:
        scheduler = JobScheduler(job_repo, lock, build_job_handlers(reconciliation))
        stop = asyncio.Event()
        await scheduler.run(stop)
    """

    def __init__(
        self,
        job_repo: IJobRepository,
        lock: IAdvisoryLock,
        handlers: dict[str, JobHandler],
        lock_id: int = 94810234,
        tick_seconds: float = 60,
        max_failures: int = 3,
        disable_on_max_failures: bool = False,
        timezone: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._job_repo = job_repo
        self._lock = lock
        self._handlers = handlers
        self._lock_id = lock_id
        self._tick_seconds = tick_seconds
        self._max_failures = max_failures
        self._disable_on_max_failures = disable_on_max_failures
        self._timezone = timezone
        self._clock = clock

        self._running: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self._metrics: dict[str, JobMetrics] = {}
        self._tick_count = 0
        self._stop_event: Optional[asyncio.Event] = None

    def _next_run(self, job: ScheduledJob, now: datetime) -> datetime:
        return compute_next_run(job.schedule, job.interval_seconds, now, self._timezone)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self, now: Optional[datetime] = None) -> TickResult:
        """
        Évalue les jobs une fois.

        Sans le verrou consultatif, le tick est ignoré : une autre instance
        s'en charge.
        """
        self._tick_count += 1
        result = TickResult(tick=self._tick_count)

        async with self._lock.try_hold(self._lock_id) as acquired:
            if not acquired:
                logger.info(
                    "Tick ignoré, verrou détenu par une autre instance",
                    tick=self._tick_count,
                )
                return result
            result.acquired = True
            now = now or self._clock()

            jobs = self._job_repo.list_jobs()
            for job in jobs:
                if not job.enabled:
                    result.disabled += 1
                    continue
                if not self._is_due(job, now):
                    continue
                if job.name in self._running:
                    result.skipped += 1
                    continue
                self._dispatch(job)
                result.fired.append(job.name)

        logger.info(
            "Tick du scheduler",
            tick=self._tick_count,
            enabled=len(jobs) - result.disabled,
            fired=len(result.fired),
            skipped=result.skipped,
            running=sorted(self._running),
        )
        return result

    def _is_due(self, job: ScheduledJob, now: datetime) -> bool:
        """Corrige la dérive de planification puis décide si le job doit partir."""
        next_run = job.next_run

        if next_run is not None and now < next_run and is_cron_schedule(job.schedule):
            expected = self._next_run(job, now)
            if abs((expected - next_run).total_seconds()) > DRIFT_TOLERANCE_SECONDS:
                logger.info(
                    "Planification corrigée",
                    job=job.name,
                    stored=next_run.isoformat(),
                    expected=expected.isoformat(),
                )
                self._job_repo.update_job_schedule(job.id, expected)
                next_run = expected

        if next_run is None:
            if job.run_on_start:
                return True
            self._job_repo.update_job_run(
                job.id, None, self._next_run(job, now), reset_failures=False
            )
            return False

        return now >= next_run

    def _dispatch(self, job: ScheduledJob) -> None:
        self._running.add(job.name)
        task = asyncio.create_task(self._run_job(job), name=f"job:{job.name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ------------------------------------------------------------------
    # Exécution
    # ------------------------------------------------------------------

    async def _run_job(self, job: ScheduledJob) -> None:
        """Exécute un job ; aucune exception ne sort de cette méthode."""
        try:
            handler = self._handlers.get(job.name)
            if handler is None:
                logger.warning("Aucun handler pour ce job", job=job.name)
                return
            await self._execute(job, handler)
        except Exception:
            logger.exception("Erreur inattendue du scheduler", job=job.name)
        finally:
            self._running.discard(job.name)

    async def _execute(self, job: ScheduledJob, handler: JobHandler) -> None:
        metrics = self._metrics.setdefault(job.name, JobMetrics(name=job.name))
        started = self._clock()
        metrics.total_runs += 1
        metrics.last_started_at = started
        logger.info("Exécution du job", job=job.name)

        try:
            details = await handler()
        except Exception as e:
            finished = self._clock()
            duration_ms = self._duration_ms(started, finished)
            message = truncate_message(str(e) or type(e).__name__)
            error = SchedulerHandlerError(job.name, message)
            logger.error(str(error), job=job.name, duration_ms=duration_ms)

            failures = self._job_repo.record_job_failure(
                job.id, message, self._max_failures, self._disable_on_max_failures
            )
            self._job_repo.update_job_run(
                job.id, finished, self._next_run(job, finished), reset_failures=False
            )
            self._record_metrics(metrics, finished, duration_ms, message)
            self._insert_history(job, JobRunStatus.FAILURE, started, finished, error=message)
            logger.debug("Échecs consécutifs", job=job.name, failures=failures)
            return

        finished = self._clock()
        duration_ms = self._duration_ms(started, finished)
        next_run = self._next_run(job, finished)
        self._job_repo.update_job_run(job.id, finished, next_run)
        self._record_metrics(metrics, finished, duration_ms)
        self._insert_history(
            job,
            JobRunStatus.SUCCESS,
            started,
            finished,
            details=details if isinstance(details, str) else None,
        )
        logger.info(
            "Job terminé",
            job=job.name,
            duration_ms=duration_ms,
            next_run=next_run.isoformat(),
        )

    @staticmethod
    def _duration_ms(started: datetime, finished: datetime) -> int:
        return max(0, int((finished - started).total_seconds() * 1000))

    @staticmethod
    def _record_metrics(
        metrics: JobMetrics,
        finished: datetime,
        duration_ms: int,
        error: Optional[str] = None,
    ) -> None:
        metrics.last_finished_at = finished
        metrics.last_duration_ms = duration_ms
        metrics.duration_total_ms += duration_ms
        if error is None:
            metrics.success_runs += 1
            metrics.last_result = "success"
            metrics.last_error = None
        else:
            metrics.failed_runs += 1
            metrics.last_result = "failure"
            metrics.last_error = error

    def _insert_history(
        self,
        job: ScheduledJob,
        status: JobRunStatus,
        started: datetime,
        finished: datetime,
        error: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        """Historique best-effort : un échec d'écriture est seulement journalisé."""
        run = JobRun(
            job_name=job.name,
            status=status,
            started_at=started,
            finished_at=finished,
            duration_ms=self._duration_ms(started, finished),
            error=error,
            details=details,
        )
        try:
            self._job_repo.insert_job_history(run)
        except Exception as e:
            logger.warning("Historique du job non enregistré", job=job.name, error=str(e))

    # ------------------------------------------------------------------
    # Boucle et pilotage
    # ------------------------------------------------------------------

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """
        Boucle principale : premier tick immédiat, puis tous les tick_seconds.

        S'arrête quand stop_event est posé (voir stop()) et attend la fin
        des jobs en cours.
        """
        self._stop_event = stop_event or asyncio.Event()
        logger.info(
            "Scheduler démarré",
            tick_seconds=self._tick_seconds,
            lock_id=self._lock_id,
        )
        while not self._stop_event.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Erreur de tick du scheduler")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._tick_seconds)
            except asyncio.TimeoutError:
                pass

        await self.wait_for_jobs()
        logger.info("Scheduler arrêté")

    def stop(self) -> None:
        """Demande l'arrêt de la boucle run()."""
        if self._stop_event is not None:
            self._stop_event.set()

    async def wait_for_jobs(self) -> None:
        """Attend la fin des jobs lancés par ce processus."""
        pending = [task for task in self._tasks if not task.done()]
        if pending:
            await asyncio.gather(*pending)

    async def run_job_now(self, name: str) -> bool:
        """
        Exécute immédiatement un job, hors planification.

        Returns:
            False si le job tourne déjà dans ce processus

        Raises:
            JobNotFoundError: Aucun job de ce nom
        """
        job = self._job_repo.get_job(name)
        if job is None:
            raise JobNotFoundError(name)
        if job.name in self._running:
            logger.info("Job déjà en cours, exécution ignorée", job=job.name)
            return False
        self._running.add(job.name)
        await self._run_job(job)
        return True

    def metrics(self) -> list[JobMetrics]:
        """Métriques d'exécution par job, triées par nom."""
        return sorted(self._metrics.values(), key=lambda m: m.name)

    def is_running(self, name: str) -> bool:
        return name in self._running

"""
Implémentation SQLModel du repository des jobs planifiés.

Implémente IJobRepository : lecture des jobs, horodatage des exécutions,
comptage des échecs et historique.
"""

from datetime import datetime
from typing import Optional

from loguru import logger
from sqlmodel import Session, col, select

from mediabroker.core.entities.job import JobRun, JobRunStatus, ScheduledJob
from mediabroker.core.ports.repositories import IJobRepository
from mediabroker.infrastructure.persistence.models import JobRunModel, ScheduledJobModel
from mediabroker.utils.helpers import truncate_message, utc_now


class SQLModelJobRepository(IJobRepository):
    """Repository SQLModel pour les jobs et leur historique."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def _to_entity(self, model: ScheduledJobModel) -> ScheduledJob:
        return ScheduledJob(
            id=model.id,
            name=model.name,
            schedule=model.schedule,
            interval_seconds=model.interval_seconds,
            enabled=model.enabled,
            run_on_start=model.run_on_start,
            last_run=model.last_run,
            next_run=model.next_run,
            last_error=model.last_error,
            failure_count=model.failure_count,
            disabled_reason=model.disabled_reason,
        )

    def _get_model(self, job_id: int) -> Optional[ScheduledJobModel]:
        model = self._session.get(ScheduledJobModel, job_id)
        if model is not None:
            self._session.refresh(model)
        return model

    def list_jobs(self) -> list[ScheduledJob]:
        """Liste tous les jobs, triés par nom."""
        statement = select(ScheduledJobModel).order_by(ScheduledJobModel.name)
        models = self._session.exec(statement).all()
        for model in models:
            self._session.refresh(model)
        return [self._to_entity(model) for model in models]

    def get_job(self, name: str) -> Optional[ScheduledJob]:
        """Récupère un job par son nom."""
        statement = select(ScheduledJobModel).where(ScheduledJobModel.name == name)
        model = self._session.exec(statement).first()
        if model is None:
            return None
        self._session.refresh(model)
        return self._to_entity(model)

    def update_job_run(
        self,
        job_id: int,
        last_run: Optional[datetime],
        next_run: datetime,
        reset_failures: bool = True,
    ) -> None:
        """Horodate l'exécution ; un succès remet le compteur d'échecs à zéro."""
        model = self._get_model(job_id)
        if model is None:
            return
        if last_run is not None:
            model.last_run = last_run
        model.next_run = next_run
        if reset_failures:
            model.failure_count = 0
            model.last_error = None
        model.updated_at = utc_now()
        self._session.add(model)
        self._session.commit()

    def update_job_schedule(self, job_id: int, next_run: datetime) -> None:
        """Corrige uniquement la prochaine exécution."""
        model = self._get_model(job_id)
        if model is None:
            return
        model.next_run = next_run
        model.updated_at = utc_now()
        self._session.add(model)
        self._session.commit()

    def record_job_failure(
        self,
        job_id: int,
        error: str,
        max_failures: int,
        disable_at_max: bool = False,
    ) -> int:
        """
        Enregistre un échec et retourne le nombre d'échecs consécutifs.

        Le compteur est plafonné à max_failures. Avec disable_at_max, le job
        est désactivé en atteignant le plafond.
        """
        model = self._get_model(job_id)
        if model is None:
            return 0
        model.failure_count = min(model.failure_count + 1, max_failures)
        model.last_error = truncate_message(error)
        if disable_at_max and model.failure_count >= max_failures:
            model.enabled = False
            model.disabled_reason = f"Disabled after {max_failures} consecutive failures"
            logger.warning("Job désactivé", job=model.name, failures=model.failure_count)
        model.updated_at = utc_now()
        self._session.add(model)
        self._session.commit()
        return model.failure_count

    def insert_job_history(self, run: JobRun) -> None:
        """Ajoute une entrée d'historique."""
        self._session.add(
            JobRunModel(
                job_name=run.job_name,
                status=run.status.value,
                started_at=run.started_at,
                finished_at=run.finished_at,
                duration_ms=run.duration_ms,
                error=truncate_message(run.error) if run.error else None,
                details=run.details,
            )
        )
        self._session.commit()

    def list_job_history(self, job_name: str, limit: int = 20) -> list[JobRun]:
        """Dernières exécutions d'un job, plus récentes d'abord."""
        statement = (
            select(JobRunModel)
            .where(JobRunModel.job_name == job_name)
            .order_by(col(JobRunModel.started_at).desc())
            .limit(limit)
        )
        return [
            JobRun(
                job_name=model.job_name,
                status=JobRunStatus(model.status),
                started_at=model.started_at,
                finished_at=model.finished_at,
                duration_ms=model.duration_ms,
                error=model.error,
                details=model.details,
            )
            for model in self._session.exec(statement).all()
        ]

    def ensure_default_jobs(self, jobs: list[ScheduledJob]) -> None:
        """Crée les jobs absents sans modifier ceux déjà configurés."""
        existing = set(self._session.exec(select(ScheduledJobModel.name)).all())
        created = False
        for job in jobs:
            if job.name in existing:
                continue
            self._session.add(
                ScheduledJobModel(
                    name=job.name,
                    schedule=job.schedule,
                    interval_seconds=job.interval_seconds,
                    enabled=job.enabled,
                    run_on_start=job.run_on_start,
                )
            )
            created = True
            logger.info("Job planifié créé", job=job.name, schedule=job.schedule)
        if created:
            self._session.commit()

"""
Container d'injection de dependances via dependency-injector.

Fournit une gestion centralisee des dependances pour la CLI et le process
scheduler : configuration, base de donnees, repositories, clients des
backends et services du moteur de demandes.
"""

from typing import Optional

from dependency_injector import containers, providers

from .adapters.api.cache import APICache
from .adapters.api.radarr_client import RadarrClient
from .adapters.api.sonarr_client import SonarrClient
from .adapters.api.tmdb_client import TMDBCatalogClient
from .adapters.notifications import LoggingNotificationDispatcher
from .config import Settings
from .infrastructure.persistence.advisory_lock import DatabaseAdvisoryLock
from .infrastructure.persistence.database import get_engine, get_session, init_db
from .infrastructure.persistence.repositories import (
    SQLModelJobRepository,
    SQLModelRequestRepository,
)
from .services.keyed_mutex import KeyedMutex
from .services.reconciliation import ReconciliationService
from .services.requests import LifecycleConfig, RequestLifecycleService
from .services.scheduler import JobScheduler, build_job_handlers


def build_radarr_client(settings: Settings) -> Optional[RadarrClient]:
    """Client Radarr, None si l'URL ou la cle API manque."""
    if not settings.radarr_enabled:
        return None
    return RadarrClient(
        settings.radarr_url,
        settings.radarr_api_key,
        root_folder=settings.radarr_root_folder,
        quality_profile_id=settings.radarr_quality_profile_id,
        queue_page_size=settings.queue_page_size,
        timeout=settings.http_timeout_seconds,
        max_attempts=settings.http_max_attempts,
    )


def build_sonarr_client(settings: Settings) -> Optional[SonarrClient]:
    """Client Sonarr, None si l'URL ou la cle API manque."""
    if not settings.sonarr_enabled:
        return None
    return SonarrClient(
        settings.sonarr_url,
        settings.sonarr_api_key,
        root_folder=settings.sonarr_root_folder,
        quality_profile_id=settings.sonarr_quality_profile_id,
        queue_page_size=settings.queue_page_size,
        timeout=settings.http_timeout_seconds,
        max_attempts=settings.http_max_attempts,
        language_profile_id=settings.sonarr_language_profile_id,
    )


def build_catalog_client(settings: Settings, cache: APICache) -> Optional[TMDBCatalogClient]:
    """Client TMDB, None sans cle API."""
    if not settings.tmdb_enabled:
        return None
    return TMDBCatalogClient(
        api_key=settings.tmdb_api_key,
        cache=cache,
        timeout=settings.http_timeout_seconds,
    )


class Container(containers.DeclarativeContainer):
    """Container DI de l'application.

    Utilisation :
        container = Container()
        container.database.init()  # Initialise la DB une fois
        service = container.lifecycle_service()
        outcome = await service.request_movie(603, user)
    """

    # Configuration - singleton charge une seule fois
    config = providers.Singleton(Settings)

    # Database - Resource pour initialisation unique
    database = providers.Resource(init_db)
    engine = providers.Singleton(get_engine)

    # Session factory - nouvelle session a chaque appel
    session = providers.Factory(lambda: next(get_session()))

    # Repositories - Factory pour nouvelle instance avec session fraiche
    request_repository = providers.Factory(
        SQLModelRequestRepository,
        session=session,
    )
    job_repository = providers.Factory(
        SQLModelJobRepository,
        session=session,
    )

    # Cache API - Singleton pour partage entre clients
    api_cache = providers.Singleton(
        APICache,
        cache_dir=config.provided.cache_dir,
    )

    # Clients externes - Singleton, None si non configures
    radarr_client = providers.Singleton(build_radarr_client, settings=config)
    sonarr_client = providers.Singleton(build_sonarr_client, settings=config)
    catalog_client = providers.Singleton(build_catalog_client, settings=config, cache=api_cache)

    notifier = providers.Singleton(LoggingNotificationDispatcher)

    # Verrou par titre partage par toutes les instances du moteur
    keyed_mutex = providers.Singleton(KeyedMutex)

    advisory_lock = providers.Singleton(
        DatabaseAdvisoryLock,
        engine=engine,
        ttl_seconds=config.provided.scheduler_lock_ttl_seconds,
    )

    lifecycle_config = providers.Singleton(LifecycleConfig.from_settings, settings=config)

    # Services - Factory car dependent de repositories (sessions fraiches)
    lifecycle_service = providers.Factory(
        RequestLifecycleService,
        request_repo=request_repository,
        radarr=radarr_client,
        sonarr=sonarr_client,
        catalog=catalog_client,
        notifier=notifier,
        mutex=keyed_mutex,
        config=lifecycle_config,
    )

    reconciliation_service = providers.Factory(
        ReconciliationService,
        request_repo=request_repository,
        radarr=radarr_client,
        sonarr=sonarr_client,
        notifier=notifier,
        batch_limit=config.provided.sync_batch_limit,
    )

    job_handlers = providers.Factory(
        build_job_handlers,
        reconciliation=reconciliation_service,
    )

    # Scheduler - Singleton : l'etat des jobs en cours est propre au processus
    job_scheduler = providers.Singleton(
        JobScheduler,
        job_repo=job_repository,
        lock=advisory_lock,
        handlers=job_handlers,
        lock_id=config.provided.scheduler_lock_id,
        tick_seconds=config.provided.scheduler_tick_seconds,
        max_failures=config.provided.scheduler_max_failures,
        disable_on_max_failures=config.provided.scheduler_disable_on_max_failures,
        timezone=config.provided.jobs_timezone,
    )

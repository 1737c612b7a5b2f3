"""
Moteur de cycle de vie des demandes de médias.

Coordonne la création, l'approbation, le refus et la suppression des
demandes. Toute opération qui lit puis écrit l'état d'un titre s'exécute
sous le verrou par clé (type, identifiant catalogue), ce qui garantit
qu'un même épisode n'est jamais soumis deux fois même lorsque plusieurs
administrateurs agissent en parallèle.
"""

import asyncio
from typing import Any, Optional
from uuid import uuid4

from loguru import logger

from mediabroker.core.entities.request import (
    EpisodeKey,
    MediaRequest,
    RequestItem,
    RequestKind,
    RequestStatus,
)
from mediabroker.core.exceptions import (
    DuplicateRequestError,
    MediaBrokerError,
    PermissionDeniedError,
    RequestNotFoundError,
    ValidationError,
)
from mediabroker.core.ports.catalog import ICatalogService, TitleInfo
from mediabroker.core.ports.notifier import INotificationDispatcher, RequestEvent
from mediabroker.core.ports.providers import IProviderAdapter
from mediabroker.core.ports.repositories import IRequestRepository
from mediabroker.core.value_objects.outcomes import OutcomeKind, RequestOutcome, Requester
from mediabroker.services.keyed_mutex import KeyedMutex
from mediabroker.utils.helpers import truncate_message

from .classifier import AlreadyExistsClassifier
from .cleanup_step import CleanupStepMixin
from .dataclasses import LifecycleConfig, SubmissionResult
from .submission_step import SubmissionStepMixin


def _validate_tmdb_id(tmdb_id: int) -> int:
    if isinstance(tmdb_id, bool) or not isinstance(tmdb_id, int) or tmdb_id <= 0:
        raise ValidationError(f"Invalid catalog id: {tmdb_id!r}")
    return tmdb_id


def _normalize_episodes(season: int, episodes: list[int]) -> list[int]:
    """Valide la saison et retourne les épisodes dédoublonnés et triés."""
    if isinstance(season, bool) or not isinstance(season, int) or season < 0:
        raise ValidationError(f"Invalid season: {season!r}")
    if not episodes:
        raise ValidationError("At least one episode is required")
    for episode in episodes:
        if isinstance(episode, bool) or not isinstance(episode, int) or episode <= 0:
            raise ValidationError(f"Invalid episode number: {episode!r}")
    return sorted(set(episodes))


class RequestLifecycleService(SubmissionStepMixin, CleanupStepMixin):
    """
    Service de gestion des demandes.

    Les deux backends sont optionnels : une demande adressée à un backend
    non configuré échoue proprement (statut failed).

    Utilisation typique:
        service = RequestLifecycleService(repo, radarr, sonarr, catalog, notifier, KeyedMutex())
        outcome = await service.request_episodes(1399, 2, [1, 2], user=admin)
    """

    def __init__(
        self,
        request_repo: IRequestRepository,
        radarr: Optional[IProviderAdapter],
        sonarr: Optional[IProviderAdapter],
        catalog: Optional[ICatalogService],
        notifier: INotificationDispatcher,
        mutex: KeyedMutex,
        config: Optional[LifecycleConfig] = None,
        classifier: Optional[AlreadyExistsClassifier] = None,
    ) -> None:
        self._repo = request_repo
        self._radarr = radarr
        self._sonarr = sonarr
        self._catalog = catalog
        self._notifier = notifier
        self._mutex = mutex
        self._config = config or LifecycleConfig()
        self._classifier = classifier or AlreadyExistsClassifier(
            self._config.already_exists_pattern
        )
        self._cleanup_tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _lock_key(kind: RequestKind, tmdb_id: int) -> str:
        # Les identifiants TMDB des films et des séries se recouvrent
        return f"{kind.value}:{tmdb_id}"

    async def _get_title(self, kind: RequestKind, tmdb_id: int) -> Optional[TitleInfo]:
        """Métadonnées du titre ; None si le catalogue est absent ou en échec."""
        if self._catalog is None:
            return None
        try:
            return await self._catalog.get_title(kind, tmdb_id)
        except MediaBrokerError as e:
            logger.warning(
                "Catalogue indisponible, titre non résolu",
                kind=kind.value,
                tmdb_id=tmdb_id,
                error=str(e),
            )
            return None

    async def _emit(self, event: str, request: MediaRequest, **extra: Any) -> None:
        """Diffuse un événement ; un échec de diffusion n'affecte pas la demande."""
        payload = {
            "request_id": request.id,
            "kind": request.kind.value,
            "tmdb_id": request.tmdb_id,
            "title": request.title,
            "requested_by": request.requested_by,
            **extra,
        }
        try:
            await self._notifier.emit(event, payload)
        except Exception as e:
            logger.warning("Échec de diffusion", event_name=event, request_id=request.id, error=str(e))

    def _load(self, request_id: str) -> MediaRequest:
        request = self._repo.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    @staticmethod
    def _require_admin(actor: Requester, action: str) -> None:
        if not actor.is_admin:
            raise PermissionDeniedError(f"Only administrators can {action} requests")

    @staticmethod
    def _resolved_outcome(request: MediaRequest) -> Optional[RequestOutcome]:
        """
        Résultat ALREADY_RESOLVED si la demande n'est plus décidable.

        Une demande déjà transmise à un backend (provider_id résolu) n'est
        plus approuvable ni refusable, même si certains éléments restent
        en attente.
        """
        if request.status != RequestStatus.PENDING:
            message = f"Request is already {request.status.value}"
        elif request.provider_id is not None:
            message = "Request is already handed off to the backend"
        else:
            return None
        return RequestOutcome(
            kind=OutcomeKind.ALREADY_RESOLVED,
            request_id=request.id,
            status=request.status,
            message=message,
        )

    def _ensure_no_active_duplicate(self, request: MediaRequest) -> None:
        """
        Rejoue le contrôle des doublons pour une demande existante.

        Raises:
            DuplicateRequestError: Une autre demande active couvre les mêmes éléments
        """
        episodes = [key.episode for key in request.episode_keys] or None
        active = self._repo.find_active_items_matching(
            request.kind,
            request.tmdb_id,
            season=request.season,
            episodes=episodes,
            exclude_request_id=request.id,
        )
        if active:
            raise DuplicateRequestError(
                (
                    EpisodeKey(match.season, match.episode)
                    for match in active
                    if match.season is not None and match.episode is not None
                ),
                existing_request_id=active[0].request_id,
            )

    # ------------------------------------------------------------------
    # Création
    # ------------------------------------------------------------------

    async def request_movie(
        self,
        tmdb_id: int,
        user: Requester,
        quality_profile_id: Optional[int] = None,
    ) -> RequestOutcome:
        """
        Demande un film.

        Un administrateur soumet directement à Radarr, un utilisateur crée
        une demande en attente d'approbation.

        Raises:
            ValidationError: Identifiant catalogue invalide
        """
        _validate_tmdb_id(tmdb_id)
        title = await self._get_title(RequestKind.MOVIE, tmdb_id)

        async with self._mutex.hold(self._lock_key(RequestKind.MOVIE, tmdb_id)):
            active = self._repo.find_active_items_matching(RequestKind.MOVIE, tmdb_id)
            if active:
                logger.info("Film déjà demandé", tmdb_id=tmdb_id, existing=active[0].request_id)
                return RequestOutcome(
                    kind=OutcomeKind.CONFLICT,
                    request_id=active[0].request_id,
                    status=active[0].request_status,
                    message="Movie already requested",
                )

            items = [RequestItem(provider="radarr")]
            return await self._create_and_dispatch(
                RequestKind.MOVIE, tmdb_id, title, items, user, quality_profile_id
            )

    async def request_episodes(
        self,
        tmdb_id: int,
        season: int,
        episodes: list[int],
        user: Requester,
        quality_profile_id: Optional[int] = None,
    ) -> RequestOutcome:
        """
        Demande des épisodes d'une saison.

        Les épisodes déjà couverts par une demande active sont retirés et
        signalés dans outcome.conflicts ; les autres sont traités
        normalement.

        Raises:
            ValidationError: Saison ou épisodes invalides
        """
        _validate_tmdb_id(tmdb_id)
        wanted = _normalize_episodes(season, episodes)
        title = await self._get_title(RequestKind.EPISODE, tmdb_id)

        async with self._mutex.hold(self._lock_key(RequestKind.EPISODE, tmdb_id)):
            active = self._repo.find_active_items_matching(
                RequestKind.EPISODE, tmdb_id, season=season, episodes=wanted
            )
            taken = {match.episode for match in active}
            conflicts = tuple(EpisodeKey(season, episode) for episode in wanted if episode in taken)
            to_process = [episode for episode in wanted if episode not in taken]

            if not to_process:
                logger.info(
                    "Tous les épisodes sont déjà demandés",
                    tmdb_id=tmdb_id,
                    season=season,
                    conflicts=[str(key) for key in conflicts],
                )
                return RequestOutcome(
                    kind=OutcomeKind.CONFLICT,
                    request_id=active[0].request_id,
                    status=active[0].request_status,
                    conflicts=conflicts,
                    message="All requested episodes are already requested",
                    skipped=len(conflicts),
                )

            items = [
                RequestItem(provider="sonarr", season=season, episode=episode)
                for episode in to_process
            ]
            return await self._create_and_dispatch(
                RequestKind.EPISODE,
                tmdb_id,
                title,
                items,
                user,
                quality_profile_id,
                conflicts=conflicts,
            )

    async def _create_and_dispatch(
        self,
        kind: RequestKind,
        tmdb_id: int,
        title: Optional[TitleInfo],
        items: list[RequestItem],
        user: Requester,
        quality_profile_id: Optional[int],
        conflicts: tuple[EpisodeKey, ...] = (),
    ) -> RequestOutcome:
        """Persiste la demande puis la soumet (admin) ou la laisse en attente."""
        initial = RequestStatus.QUEUED if user.is_admin else RequestStatus.PENDING
        for item in items:
            item.status = initial

        draft = MediaRequest(
            id=uuid4().hex,
            kind=kind,
            tmdb_id=tmdb_id,
            title=title.name if title else "",
            release_year=title.release_year if title else None,
            poster_path=title.poster_path if title else None,
            requested_by=user.id,
        )
        request = self._repo.create_request_with_items(draft, items)
        logger.info(
            "Demande créée",
            request_id=request.id,
            kind=kind.value,
            tmdb_id=tmdb_id,
            items=len(items),
            status=request.status.value,
            requested_by=user.id,
        )

        if not user.is_admin:
            await self._emit(RequestEvent.PENDING, request)
            return RequestOutcome(
                kind=OutcomeKind.PENDING,
                request_id=request.id,
                status=request.status,
                event=RequestEvent.PENDING,
                conflicts=conflicts,
                skipped=len(conflicts),
            )

        return await self._submit_and_report(request, quality_profile_id, conflicts)

    async def _submit_and_report(
        self,
        request: MediaRequest,
        quality_profile_id: Optional[int],
        conflicts: tuple[EpisodeKey, ...] = (),
    ) -> RequestOutcome:
        """Soumet au backend et traduit le résultat en un seul événement."""
        try:
            result = await self._submit(request, quality_profile_id)
        except Exception as e:
            reason = truncate_message(str(e) or type(e).__name__)
            logger.error(
                "Échec de soumission au backend",
                request_id=request.id,
                kind=request.kind.value,
                tmdb_id=request.tmdb_id,
                error=reason,
            )
            self._repo.mark_request_status(request.id, RequestStatus.FAILED, reason=reason)
            await self._emit(RequestEvent.FAILED, request, reason=reason)
            return RequestOutcome(
                kind=OutcomeKind.FAILED,
                request_id=request.id,
                status=RequestStatus.FAILED,
                event=RequestEvent.FAILED,
                conflicts=conflicts,
                message=reason,
                skipped=len(conflicts),
            )

        outcome_kind, event = self._classify(result)
        extra: dict[str, Any] = {}
        if result.missing:
            extra["missing"] = [str(key) for key in result.missing]
        await self._emit(event, request, status=result.status.value, **extra)

        logger.info(
            "Demande soumise",
            request_id=request.id,
            status=result.status.value,
            matched=len(result.matched),
            missing=len(result.missing),
        )
        return RequestOutcome(
            kind=outcome_kind,
            request_id=request.id,
            status=result.status,
            event=event,
            conflicts=conflicts,
            message=result.reason,
            provider_item_id=result.provider_item.id if result.provider_item else None,
            skipped=len(conflicts),
        )

    @staticmethod
    def _classify(result: SubmissionResult) -> tuple[OutcomeKind, str]:
        if result.status == RequestStatus.ALREADY_EXISTS:
            return OutcomeKind.ALREADY_EXISTS, RequestEvent.ALREADY_EXISTS
        # Soumission partielle : au moins un épisode est parti en recherche
        if result.status == RequestStatus.PENDING and not result.matched:
            return OutcomeKind.PENDING, RequestEvent.PENDING
        return OutcomeKind.SUBMITTED, RequestEvent.SUBMITTED

    # ------------------------------------------------------------------
    # Approbation / refus
    # ------------------------------------------------------------------

    async def approve(
        self,
        request_id: str,
        actor: Requester,
        quality_profile_id: Optional[int] = None,
    ) -> RequestOutcome:
        """
        Approuve une demande en attente et la soumet au backend.

        Le contrôle des doublons est rejoué en excluant la demande
        elle-même : si un autre administrateur a entre-temps soumis les
        mêmes épisodes, le résultat est CONFLICT et rien n'est écrit.

        Raises:
            PermissionDeniedError: L'acteur n'est pas administrateur
            RequestNotFoundError: Demande inconnue
        """
        self._require_admin(actor, "approve")
        request = self._load(request_id)

        async with self._mutex.hold(self._lock_key(request.kind, request.tmdb_id)):
            request = self._load(request_id)
            resolved = self._resolved_outcome(request)
            if resolved is not None:
                return resolved

            try:
                self._ensure_no_active_duplicate(request)
            except DuplicateRequestError as e:
                logger.info(
                    "Approbation en conflit",
                    request_id=request.id,
                    existing=e.existing_request_id,
                    conflicts=[str(key) for key in e.conflicts],
                )
                return RequestOutcome(
                    kind=OutcomeKind.CONFLICT,
                    request_id=request.id,
                    status=request.status,
                    conflicts=e.conflicts,
                    message=f"Already requested in {e.existing_request_id}",
                )

            self._repo.mark_request_status(request.id, RequestStatus.QUEUED, reason="")
            logger.info("Demande approuvée", request_id=request.id, approved_by=actor.id)
            return await self._submit_and_report(self._load(request.id), quality_profile_id)

    async def deny(self, request_id: str, actor: Requester) -> RequestOutcome:
        """
        Refuse une demande en attente.

        Raises:
            PermissionDeniedError: L'acteur n'est pas administrateur
            RequestNotFoundError: Demande inconnue
        """
        self._require_admin(actor, "deny")
        request = self._load(request_id)

        async with self._mutex.hold(self._lock_key(request.kind, request.tmdb_id)):
            request = self._load(request_id)
            resolved = self._resolved_outcome(request)
            if resolved is not None:
                return resolved
            self._repo.mark_request_status(request.id, RequestStatus.DENIED)

        logger.info("Demande refusée", request_id=request.id, denied_by=actor.id)
        await self._emit(RequestEvent.DENIED, request)
        return RequestOutcome(
            kind=OutcomeKind.DENIED,
            request_id=request.id,
            status=RequestStatus.DENIED,
            event=RequestEvent.DENIED,
        )

    # ------------------------------------------------------------------
    # Suppression
    # ------------------------------------------------------------------

    async def delete(self, request_id: str, actor: Requester) -> RequestOutcome:
        """
        Supprime une demande, quel que soit son statut.

        Le statut removed est écrit immédiatement ; le nettoyage des
        backends s'exécute ensuite dans une tâche de fond (voir
        wait_for_cleanups).

        Raises:
            PermissionDeniedError: L'acteur n'est pas administrateur
            RequestNotFoundError: Demande inconnue
        """
        self._require_admin(actor, "delete")
        request = self._load(request_id)

        async with self._mutex.hold(self._lock_key(request.kind, request.tmdb_id)):
            request = self._load(request_id)
            if request.status == RequestStatus.REMOVED:
                return RequestOutcome(
                    kind=OutcomeKind.ALREADY_RESOLVED,
                    request_id=request.id,
                    status=request.status,
                    message="Request is already removed",
                )
            self._repo.mark_request_status(request.id, RequestStatus.REMOVED)

        logger.info("Demande supprimée", request_id=request.id, removed_by=actor.id)
        await self._emit(RequestEvent.REMOVED, request)

        task = asyncio.create_task(self._run_cleanup(request))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

        return RequestOutcome(
            kind=OutcomeKind.REMOVED,
            request_id=request.id,
            status=RequestStatus.REMOVED,
            event=RequestEvent.REMOVED,
            provider_item_id=request.provider_id,
        )

    async def _run_cleanup(self, request: MediaRequest) -> None:
        try:
            await self._cleanup_providers(request)
        except Exception:
            logger.exception("Nettoyage backend interrompu", request_id=request.id)

    async def wait_for_cleanups(self) -> None:
        """Attend la fin des nettoyages en cours (arrêt, tests)."""
        pending = [task for task in self._cleanup_tasks if not task.done()]
        if pending:
            await asyncio.gather(*pending)

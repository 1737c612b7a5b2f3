"""
Service de réconciliation des demandes avec l'état réel des backends.

Exécuté périodiquement par le job request-sync. Pour chaque demande encore
suivie, compare les éléments demandés aux fichiers présents et à la file
de téléchargement de Radarr/Sonarr, puis met à jour les statuts des
éléments. Le statut de la demande est toujours recalculé par agrégation.

Une passe est idempotente : relancée sans changement côté backend, elle
n'écrit rien et n'émet aucun événement.
"""

from typing import Optional

from loguru import logger

from mediabroker.core.entities.request import (
    MediaRequest,
    RequestItem,
    RequestKind,
    RequestStatus,
)
from mediabroker.core.exceptions import MediaBrokerError, ProviderNotFoundError
from mediabroker.core.ports.notifier import INotificationDispatcher, RequestEvent
from mediabroker.core.ports.providers import IProviderAdapter, QueueRecord
from mediabroker.core.ports.repositories import IRequestRepository
from mediabroker.core.value_objects.outcomes import SyncSummary

# Transitions de demande qui déclenchent une notification
_STATUS_EVENTS = {
    RequestStatus.AVAILABLE: RequestEvent.AVAILABLE,
    RequestStatus.REMOVED: RequestEvent.REMOVED,
    RequestStatus.FAILED: RequestEvent.FAILED,
}

# Un élément disponible ou clos n'est plus réévalué
_SETTLED_ITEM_STATUSES = frozenset(
    {
        RequestStatus.AVAILABLE,
        RequestStatus.FAILED,
        RequestStatus.REMOVED,
        RequestStatus.DENIED,
        RequestStatus.ALREADY_EXISTS,
    }
)


class ReconciliationService:
    """
    Service de synchronisation des statuts de demandes.

    Règles par élément :
    - fichier présent : available
    - présent dans la file sans erreur : downloading
    - en erreur dans la file deux passes de suite : failed (la première
      observation ne fait que poser un drapeau)
    - élément parent supprimé du backend (404) : removed
    """

    def __init__(
        self,
        request_repo: IRequestRepository,
        radarr: Optional[IProviderAdapter],
        sonarr: Optional[IProviderAdapter],
        notifier: INotificationDispatcher,
        batch_limit: int = 100,
    ) -> None:
        self._repo = request_repo
        self._radarr = radarr
        self._sonarr = sonarr
        self._notifier = notifier
        self._batch_limit = batch_limit

    async def sync_pending_requests(self) -> SyncSummary:
        """
        Exécute une passe de réconciliation.

        Les erreurs propres à une demande sont comptées et journalisées sans
        interrompre la passe.

        Returns:
            Compteurs de la passe
        """
        summary = SyncSummary()
        requests = self._repo.list_non_terminal_requests(limit=self._batch_limit)
        if not requests:
            logger.debug("Aucune demande à réconcilier")
            return summary

        radarr_queue = await self._fetch_queue(self._radarr)
        sonarr_queue = await self._fetch_queue(self._sonarr)

        for request in requests:
            try:
                if request.kind == RequestKind.MOVIE:
                    status = await self._sync_request(request, self._radarr, radarr_queue)
                else:
                    status = await self._sync_request(request, self._sonarr, sonarr_queue)
            except MediaBrokerError as e:
                summary.errors += 1
                logger.warning(
                    "Réconciliation de la demande en échec",
                    request_id=request.id,
                    error=str(e),
                )
                continue
            except Exception:
                # Une demande en erreur n'interrompt jamais la passe
                summary.errors += 1
                logger.exception("Erreur inattendue pendant la réconciliation", request_id=request.id)
                continue

            if status is None:
                continue
            summary.processed += 1
            self._count(summary, status)

        logger.info("Passe de réconciliation terminée", summary=str(summary))
        return summary

    @staticmethod
    def _count(summary: SyncSummary, status: RequestStatus) -> None:
        if status == RequestStatus.DOWNLOADING:
            summary.downloading += 1
        elif status == RequestStatus.AVAILABLE:
            summary.available += 1
        elif status == RequestStatus.PARTIALLY_AVAILABLE:
            summary.partially_available += 1
        elif status == RequestStatus.REMOVED:
            summary.removed += 1
        elif status == RequestStatus.FAILED:
            summary.failed += 1

    async def _fetch_queue(self, provider: Optional[IProviderAdapter]) -> list[QueueRecord]:
        """File de téléchargement d'un backend ; vide si indisponible."""
        if provider is None:
            return []
        try:
            return await provider.list_queue()
        except MediaBrokerError as e:
            logger.warning("File de téléchargement indisponible", provider=provider.name, error=str(e))
            return []

    async def _sync_request(
        self,
        request: MediaRequest,
        provider: Optional[IProviderAdapter],
        queue: list[QueueRecord],
    ) -> Optional[RequestStatus]:
        """
        Réconcilie une demande et retourne son statut après la passe.

        None si la demande n'est pas encore rattachée à un backend.
        """
        provider_id = request.provider_id
        if provider is None or provider_id is None:
            return None

        try:
            parent = await provider.get_item(provider_id)
        except ProviderNotFoundError:
            logger.info("Élément supprimé du backend", request_id=request.id, provider_id=provider_id)
            statuses = {
                item.id: RequestStatus.REMOVED
                for item in request.items
                if item.status != RequestStatus.REMOVED
            }
            return await self._apply(request, statuses)

        if request.kind == RequestKind.MOVIE:
            targets = {item.id: (parent.has_file, {parent.id}) for item in request.items}
            records = [record for record in queue if record.item_id == parent.id]
        else:
            units = await provider.get_detail(parent.id)
            by_key = {(unit.season, unit.episode): unit for unit in units}
            targets = {}
            for item in request.items:
                unit = by_key.get((item.season, item.episode))
                if unit is not None:
                    targets[item.id] = (unit.has_file, {unit.id})
            records = queue

        statuses: dict[int, RequestStatus] = {}
        for item in request.items:
            if item.status in _SETTLED_ITEM_STATUSES or item.id not in targets:
                continue
            has_file, unit_ids = targets[item.id]
            if request.kind == RequestKind.MOVIE:
                matching = records
            else:
                matching = [r for r in records if unit_ids.intersection(r.related_unit_ids)]
            new_status = self._evaluate_item(item, has_file, matching)
            if new_status is not None and new_status != item.status:
                statuses[item.id] = new_status

        return await self._apply(request, statuses)

    def _evaluate_item(
        self,
        item: RequestItem,
        has_file: bool,
        records: list[QueueRecord],
    ) -> Optional[RequestStatus]:
        """Nouveau statut d'un élément, None s'il ne change pas."""
        if has_file:
            self._set_error_flag(item, False)
            return RequestStatus.AVAILABLE

        if any(record.is_error for record in records):
            if item.queue_error_seen:
                return RequestStatus.FAILED
            # Première observation : on attend la passe suivante
            self._set_error_flag(item, True)
            return None

        self._set_error_flag(item, False)
        if any(record.is_active for record in records):
            return RequestStatus.DOWNLOADING
        return None

    def _set_error_flag(self, item: RequestItem, seen: bool) -> None:
        if item.queue_error_seen != seen and item.id is not None:
            self._repo.set_item_queue_error(item.id, seen)
            item.queue_error_seen = seen

    async def _apply(
        self,
        request: MediaRequest,
        statuses: dict[int, RequestStatus],
    ) -> RequestStatus:
        """Écrit les changements (s'il y en a) et notifie les transitions."""
        if not statuses:
            return request.status

        new_status = self._repo.set_items_status(request.id, statuses)
        if new_status == request.status:
            return new_status

        logger.info(
            "Statut de demande mis à jour",
            request_id=request.id,
            previous=request.status.value,
            status=new_status.value,
        )
        event = _STATUS_EVENTS.get(new_status)
        if event is not None:
            payload = {
                "request_id": request.id,
                "kind": request.kind.value,
                "tmdb_id": request.tmdb_id,
                "title": request.title,
                "requested_by": request.requested_by,
                "status": new_status.value,
            }
            try:
                await self._notifier.emit(event, payload)
            except Exception as e:
                logger.warning("Échec de diffusion", event_name=event, request_id=request.id, error=str(e))
        return new_status

"""
Implémentation SQLModel du repository des demandes.

Implémente IRequestRepository. Chaque écriture de statut d'élément
recalcule le statut agrégé de la demande avant le commit, de sorte
qu'une demande et ses éléments ne sont jamais incohérents en base.
"""

from typing import Optional

from sqlmodel import Session, col, select

from mediabroker.core.entities.request import (
    ACTIVE_STATUSES,
    NON_TERMINAL_STATUSES,
    MediaRequest,
    RequestItem,
    RequestKind,
    RequestStatus,
    aggregate_status,
)
from mediabroker.core.exceptions import RequestNotFoundError, ValidationError
from mediabroker.core.ports.repositories import ActiveItemMatch, IRequestRepository
from mediabroker.infrastructure.persistence.models import (
    MediaRequestModel,
    RequestItemModel,
)
from mediabroker.utils.helpers import utc_now


class SQLModelRequestRepository(IRequestRepository):
    """
    Repository SQLModel pour les demandes et leurs éléments.

    Conversion bidirectionnelle entre MediaRequest/RequestItem (domaine)
    et MediaRequestModel/RequestItemModel (persistance).
    """

    def __init__(self, session: Session) -> None:
        """
        Initialise le repository avec une session SQLModel.

        Args :
            session : Session SQLModel active pour les opérations DB
        """
        self._session = session

    def _item_to_entity(self, model: RequestItemModel) -> RequestItem:
        return RequestItem(
            id=model.id,
            provider=model.provider,
            provider_id=model.provider_id,
            season=model.season,
            episode=model.episode,
            status=RequestStatus(model.status),
            provider_unit_id=model.provider_unit_id,
            queue_error_seen=model.queue_error_seen,
        )

    def _to_entity(
        self,
        model: MediaRequestModel,
        items: list[RequestItemModel],
    ) -> MediaRequest:
        """
        Convertit un modèle DB et ses éléments en entité domaine.

        Args :
            model : Le modèle MediaRequestModel
            items : Les RequestItemModel rattachés

        Retourne :
            L'entité MediaRequest correspondante
        """
        return MediaRequest(
            id=model.id,
            kind=RequestKind(model.kind),
            tmdb_id=model.tmdb_id,
            title=model.title,
            status=RequestStatus(model.status),
            items=[self._item_to_entity(item) for item in items],
            requested_by=model.requested_by,
            created_at=model.created_at,
            status_reason=model.status_reason,
            release_year=model.release_year,
            poster_path=model.poster_path,
        )

    def _load_items(self, request_id: str) -> list[RequestItemModel]:
        statement = (
            select(RequestItemModel)
            .where(RequestItemModel.request_id == request_id)
            .order_by(RequestItemModel.season, RequestItemModel.episode, RequestItemModel.id)
        )
        return list(self._session.exec(statement).all())

    def _get_model(self, request_id: str) -> MediaRequestModel:
        model = self._session.get(MediaRequestModel, request_id)
        if model is None:
            raise RequestNotFoundError(request_id)
        return model

    @staticmethod
    def _apply_reason(model: MediaRequestModel, reason: Optional[str]) -> None:
        if reason is not None:
            model.status_reason = reason or None

    def create_request_with_items(
        self,
        request: MediaRequest,
        items: list[RequestItem],
    ) -> MediaRequest:
        """Insère la demande et ses éléments dans un seul commit."""
        if not items:
            raise ValidationError("A request must contain at least one item")

        now = utc_now()
        model = MediaRequestModel(
            id=request.id,
            kind=request.kind.value,
            tmdb_id=request.tmdb_id,
            title=request.title,
            status=aggregate_status(item.status for item in items).value,
            requested_by=request.requested_by,
            status_reason=request.status_reason,
            release_year=request.release_year,
            poster_path=request.poster_path,
            created_at=request.created_at or now,
            updated_at=now,
        )
        self._session.add(model)
        for item in items:
            self._session.add(
                RequestItemModel(
                    request_id=request.id,
                    provider=item.provider,
                    provider_id=item.provider_id,
                    provider_unit_id=item.provider_unit_id,
                    season=item.season,
                    episode=item.episode,
                    status=RequestStatus(item.status).value,
                    created_at=now,
                    updated_at=now,
                )
            )
        try:
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        created = self.get_request(request.id)
        if created is None:
            raise RequestNotFoundError(request.id)
        return created

    def get_request(self, request_id: str) -> Optional[MediaRequest]:
        """Récupère une demande avec ses éléments."""
        model = self._session.get(MediaRequestModel, request_id)
        if model is None:
            return None
        self._session.refresh(model)
        return self._to_entity(model, self._load_items(request_id))

    def mark_request_status(
        self,
        request_id: str,
        status: RequestStatus,
        reason: Optional[str] = None,
    ) -> None:
        """Écrit le même statut sur la demande et tous ses éléments."""
        model = self._get_model(request_id)
        now = utc_now()
        for item in self._load_items(request_id):
            item.status = RequestStatus(status).value
            item.updated_at = now
            self._session.add(item)
        model.status = RequestStatus(status).value
        self._apply_reason(model, reason)
        model.updated_at = now
        self._session.add(model)
        self._session.commit()

    def set_items_status(
        self,
        request_id: str,
        statuses: dict[int, RequestStatus],
        reason: Optional[str] = None,
    ) -> RequestStatus:
        """Met à jour les éléments désignés puis recalcule le statut agrégé."""
        model = self._get_model(request_id)
        now = utc_now()
        items = self._load_items(request_id)
        for item in items:
            if item.id in statuses:
                item.status = RequestStatus(statuses[item.id]).value
                item.updated_at = now
                self._session.add(item)

        aggregated = aggregate_status(RequestStatus(item.status) for item in items)
        model.status = aggregated.value
        self._apply_reason(model, reason)
        model.updated_at = now
        self._session.add(model)
        self._session.commit()
        return aggregated

    def set_items_provider_ids(
        self,
        request_id: str,
        provider_id: Optional[int],
        unit_ids: Optional[dict[int, int]] = None,
    ) -> None:
        """Enregistre l'id backend du parent et, par élément, l'id d'unité."""
        self._get_model(request_id)
        unit_ids = unit_ids or {}
        now = utc_now()
        for item in self._load_items(request_id):
            if provider_id is not None:
                item.provider_id = provider_id
            if item.id in unit_ids:
                item.provider_unit_id = unit_ids[item.id]
            item.updated_at = now
            self._session.add(item)
        self._session.commit()

    def set_item_queue_error(self, item_id: int, seen: bool) -> None:
        """Pose ou retire le drapeau d'erreur de file d'un élément."""
        item = self._session.get(RequestItemModel, item_id)
        if item is None or item.queue_error_seen == seen:
            return
        item.queue_error_seen = seen
        item.updated_at = utc_now()
        self._session.add(item)
        self._session.commit()

    def find_active_items_matching(
        self,
        kind: RequestKind,
        tmdb_id: int,
        season: Optional[int] = None,
        episodes: Optional[list[int]] = None,
        exclude_request_id: Optional[str] = None,
    ) -> list[ActiveItemMatch]:
        """
        Éléments actifs portant sur le même titre (et les mêmes épisodes).

        Un élément est actif si son propre statut est pending, queued,
        submitted ou downloading.
        """
        statement = (
            select(RequestItemModel, MediaRequestModel)
            .join(MediaRequestModel, MediaRequestModel.id == RequestItemModel.request_id)
            .where(MediaRequestModel.kind == kind.value)
            .where(MediaRequestModel.tmdb_id == tmdb_id)
            .where(col(RequestItemModel.status).in_([s.value for s in ACTIVE_STATUSES]))
        )
        if kind == RequestKind.EPISODE:
            if not episodes:
                return []
            statement = statement.where(RequestItemModel.season == season).where(
                col(RequestItemModel.episode).in_(episodes)
            )
        if exclude_request_id is not None:
            statement = statement.where(MediaRequestModel.id != exclude_request_id)

        statement = statement.order_by(
            RequestItemModel.season, RequestItemModel.episode, MediaRequestModel.created_at
        )
        return [
            ActiveItemMatch(
                request_id=request.id,
                request_status=RequestStatus(request.status),
                season=item.season,
                episode=item.episode,
            )
            for item, request in self._session.exec(statement).all()
        ]

    def _list(self, statuses: Optional[list[RequestStatus]], limit: int, oldest_first: bool):
        statement = select(MediaRequestModel)
        if statuses:
            statement = statement.where(
                col(MediaRequestModel.status).in_([RequestStatus(s).value for s in statuses])
            )
        order = MediaRequestModel.created_at if oldest_first else col(MediaRequestModel.created_at).desc()
        statement = statement.order_by(order).limit(limit)
        models = self._session.exec(statement).all()
        return [self._to_entity(model, self._load_items(model.id)) for model in models]

    def list_non_terminal_requests(self, limit: int = 100) -> list[MediaRequest]:
        """Demandes encore suivies par la réconciliation, plus anciennes d'abord."""
        return self._list(list(NON_TERMINAL_STATUSES), limit, oldest_first=True)

    def list_requests(
        self,
        statuses: Optional[list[RequestStatus]] = None,
        limit: int = 50,
    ) -> list[MediaRequest]:
        """Demandes les plus récentes d'abord."""
        return self._list(statuses, limit, oldest_first=False)

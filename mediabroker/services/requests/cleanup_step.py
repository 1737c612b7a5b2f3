"""
Étape de nettoyage des backends après suppression d'une demande.

Le statut removed est écrit avant le nettoyage et fait foi : chaque appel
backend est best-effort, journalisé en cas d'échec et jamais propagé.
Pour une série, l'ordre est strict : désactivation de la surveillance des
épisodes, retrait des téléchargements en cours, puis suppression de la
série, afin qu'aucune recherche ne soit relancée après coup.
"""

from typing import Awaitable, Optional, TypeVar

from loguru import logger

from mediabroker.core.entities.request import MediaRequest, RequestKind
from mediabroker.core.exceptions import CleanupError, MediaBrokerError
from mediabroker.core.ports.providers import IProviderAdapter

T = TypeVar("T")


class CleanupStepMixin:
    """Mixin pour le déprovisionnement best-effort côté backend."""

    async def _best_effort(
        self,
        step: str,
        request_id: str,
        call: Awaitable[T],
        default: Optional[T] = None,
    ) -> Optional[T]:
        """
        Attend l'appel ; un échec est journalisé comme CleanupError.

        Toute exception est absorbée pour que les étapes suivantes
        s'exécutent quand même.
        """
        try:
            return await call
        except MediaBrokerError as e:
            error = CleanupError(f"{step} failed: {e}")
            logger.warning(
                "Nettoyage backend en échec",
                request_id=request_id,
                step=step,
                error=str(error),
            )
            return default
        except Exception as e:
            error = CleanupError(f"{step} failed: {type(e).__name__}: {e}")
            logger.opt(exception=e).warning(
                "Nettoyage backend en échec",
                request_id=request_id,
                step=step,
                error=str(error),
            )
            return default

    async def _cleanup_providers(self, request: MediaRequest) -> None:
        """Retire du backend ce que la demande y avait provisionné."""
        provider_id = request.provider_id
        if provider_id is None:
            logger.debug("Aucun élément backend à nettoyer", request_id=request.id)
            return

        provider = self._radarr if request.kind == RequestKind.MOVIE else self._sonarr
        if provider is None:
            logger.warning(
                "Backend non configuré, nettoyage ignoré",
                request_id=request.id,
                kind=request.kind.value,
            )
            return

        if request.kind == RequestKind.MOVIE:
            await self._best_effort(
                "delete movie",
                request.id,
                provider.delete_item(
                    provider_id,
                    delete_files=self._config.cleanup_delete_files,
                    add_exclusion=self._config.cleanup_add_exclusion,
                ),
            )
        else:
            await self._cleanup_series(provider, request, provider_id)

        logger.info("Nettoyage backend terminé", request_id=request.id, provider=provider.name)

    async def _resolve_episode_ids(
        self,
        provider: IProviderAdapter,
        request: MediaRequest,
        series_id: int,
    ) -> list[int]:
        """Identifiants des épisodes demandés, depuis le cache ou le détail de la série."""
        ids = [item.provider_unit_id for item in request.items if item.provider_unit_id]
        if len(ids) == len(request.items):
            return ids

        units = await self._best_effort(
            "resolve episodes", request.id, provider.get_detail(series_id), default=[]
        )
        wanted = set(request.episode_keys)
        return [
            unit.id
            for unit in units or []
            if unit.season is not None
            and unit.episode is not None
            and (unit.season, unit.episode) in {(k.season, k.episode) for k in wanted}
        ]

    async def _cleanup_series(
        self,
        provider: IProviderAdapter,
        request: MediaRequest,
        series_id: int,
    ) -> None:
        episode_ids = await self._resolve_episode_ids(provider, request, series_id)

        if episode_ids:
            await self._best_effort(
                "unmonitor episodes",
                request.id,
                provider.set_units_monitored(episode_ids, False),
            )

            queue = await self._best_effort(
                "list queue", request.id, provider.list_queue(), default=[]
            )
            wanted = set(episode_ids)
            for record in queue or []:
                if wanted.intersection(record.related_unit_ids):
                    await self._best_effort(
                        f"delete queue item {record.id}",
                        request.id,
                        provider.delete_queue_item(record.id),
                    )

        await self._best_effort(
            "delete series",
            request.id,
            provider.delete_item(
                series_id,
                delete_files=self._config.cleanup_delete_files,
                add_exclusion=self._config.cleanup_add_exclusion,
            ),
        )

"""
Étape de soumission au backend : résolution, ajout, surveillance, recherche.

Exécutée par un administrateur (création directe ou approbation), toujours
sous le verrou par clé du titre. La demande est déjà persistée en queued.
"""

import asyncio
from typing import Optional

from loguru import logger

from mediabroker.core.entities.request import (
    EpisodeKey,
    MediaRequest,
    RequestKind,
    RequestStatus,
)
from mediabroker.core.exceptions import (
    ProviderAddError,
    ProviderError,
    ProviderLookupError,
    ProviderPopulationTimeout,
)
from mediabroker.core.ports.providers import IProviderAdapter, ProviderItem, ProviderUnit

from .dataclasses import SubmissionResult


class SubmissionStepMixin:
    """Mixin pour la soumission d'une demande aux backends Radarr/Sonarr."""

    def _provider_for(self, kind: RequestKind) -> IProviderAdapter:
        provider = self._radarr if kind == RequestKind.MOVIE else self._sonarr
        if provider is None:
            name = "Radarr" if kind == RequestKind.MOVIE else "Sonarr"
            raise ProviderError(f"{name} is not configured", provider=name.lower())
        return provider

    async def _submit(
        self,
        request: MediaRequest,
        quality_profile_id: Optional[int] = None,
    ) -> SubmissionResult:
        """
        Soumet la demande au backend adapté.

        Les erreurs non récupérables sont propagées : l'appelant marque
        alors la demande en échec.
        """
        if request.kind == RequestKind.MOVIE:
            return await self._submit_movie(request, quality_profile_id)
        return await self._submit_episodes(request, quality_profile_id)

    async def _add_or_recover(
        self,
        provider: IProviderAdapter,
        external_id: int,
        monitored: bool,
        quality_profile_id: Optional[int],
    ) -> tuple[ProviderItem, bool]:
        """
        Recherche puis ajoute l'élément au backend.

        Un refus « déjà présent » déclenche un nouveau parcours des éléments
        suivis ; si l'élément reste introuvable, l'erreur d'origine remonte.

        Retourne l'élément et True s'il vient d'être créé.
        """
        matches = await provider.lookup_by_external_id(external_id)
        if not matches:
            raise ProviderLookupError(
                f"No {provider.name} lookup result for {external_id}",
                provider=provider.name,
            )

        try:
            return await provider.add_item(matches[0], monitored, quality_profile_id), True
        except ProviderAddError as e:
            if not self._classifier.matches(e):
                raise
            logger.info(
                "Élément déjà présent, récupération",
                provider=provider.name,
                external_id=external_id,
                error=str(e),
            )
            existing = await provider.find_tracked_item(external_id)
            if existing is None:
                raise
            return existing, False

    async def _submit_movie(
        self,
        request: MediaRequest,
        quality_profile_id: Optional[int],
    ) -> SubmissionResult:
        provider = self._provider_for(RequestKind.MOVIE)

        movie = await provider.find_tracked_item(request.tmdb_id)
        if movie is None:
            movie, _ = await self._add_or_recover(
                provider, request.tmdb_id, True, quality_profile_id
            )

        item_ids = [item.id for item in request.items]
        self._repo.set_items_provider_ids(
            request.id, movie.id, {item_id: movie.id for item_id in item_ids}
        )

        if movie.has_file:
            reason = f"Already available in {provider.name}"
            status = self._repo.set_items_status(
                request.id,
                {item_id: RequestStatus.ALREADY_EXISTS for item_id in item_ids},
                reason=reason,
            )
            return SubmissionResult(status=status, provider_item=movie, reason=reason)

        await provider.set_units_monitored([movie.id], True)
        await provider.trigger_search([movie.id])

        status = self._repo.set_items_status(
            request.id,
            {item_id: RequestStatus.SUBMITTED for item_id in item_ids},
            reason="",
        )
        return SubmissionResult(status=status, provider_item=movie)

    async def _resolve_tvdb_id(self, tmdb_id: int) -> int:
        title = await self._get_title(RequestKind.EPISODE, tmdb_id)
        if title is None or not title.tvdb_id:
            raise ProviderLookupError(
                f"No TVDB id known for TMDB tv {tmdb_id}", provider="tmdb"
            )
        return title.tvdb_id

    async def _wait_for_units(
        self,
        provider: IProviderAdapter,
        series_id: int,
        wanted: list[EpisodeKey],
        attempts: int,
    ) -> dict[EpisodeKey, ProviderUnit]:
        """
        Interroge le détail de la série jusqu'à trouver tous les épisodes voulus.

        Nombre de tentatives borné ; retourne ce qui a été trouvé à la
        dernière tentative.
        """
        wanted_set = set(wanted)
        matched: dict[EpisodeKey, ProviderUnit] = {}
        for attempt in range(1, attempts + 1):
            units = await provider.get_detail(series_id)
            matched = {
                EpisodeKey(unit.season, unit.episode): unit
                for unit in units
                if unit.season is not None
                and unit.episode is not None
                and EpisodeKey(unit.season, unit.episode) in wanted_set
            }
            if len(matched) == len(wanted_set):
                break
            if attempt < attempts:
                logger.debug(
                    "Épisodes pas encore peuplés",
                    series_id=series_id,
                    attempt=attempt,
                    found=len(matched),
                    wanted=len(wanted_set),
                )
                await asyncio.sleep(self._config.poll_delay_seconds)
        return matched

    async def _submit_episodes(
        self,
        request: MediaRequest,
        quality_profile_id: Optional[int],
    ) -> SubmissionResult:
        provider = self._provider_for(RequestKind.EPISODE)
        tvdb_id = await self._resolve_tvdb_id(request.tmdb_id)

        just_added = False
        series = await provider.find_tracked_item(tvdb_id)
        if series is None:
            series, just_added = await self._add_or_recover(
                provider, tvdb_id, False, quality_profile_id
            )
        self._repo.set_items_provider_ids(request.id, series.id)

        attempts = (
            self._config.poll_attempts_new if just_added else self._config.poll_attempts_existing
        )
        wanted = request.episode_keys
        matched = await self._wait_for_units(provider, series.id, wanted, attempts)
        missing = [key for key in wanted if key not in matched]

        items_by_key = {item.key: item for item in request.items}
        unit_ids = {items_by_key[key].id: unit.id for key, unit in matched.items()}
        if unit_ids:
            self._repo.set_items_provider_ids(request.id, series.id, unit_ids)

        episode_ids = [matched[key].id for key in wanted if key in matched]
        if episode_ids:
            await provider.set_units_monitored(episode_ids, True)
            await provider.trigger_search(episode_ids)

        reason = str(ProviderPopulationTimeout(missing, provider.name)) if missing else ""
        statuses = {
            item.id: (RequestStatus.SUBMITTED if item.key in matched else RequestStatus.PENDING)
            for item in request.items
        }
        status = self._repo.set_items_status(request.id, statuses, reason=reason)

        if missing:
            logger.warning(
                "Épisodes introuvables dans le backend, demande en attente",
                request_id=request.id,
                missing=[str(key) for key in missing],
            )
        return SubmissionResult(
            status=status,
            provider_item=series,
            matched=[key for key in wanted if key in matched],
            missing=missing,
            reason=reason or None,
        )

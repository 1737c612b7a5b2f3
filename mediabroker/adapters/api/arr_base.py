"""
Base commune des clients Radarr et Sonarr (API REST v3).

Les deux backends partagent l'authentification (header X-Api-Key), la
file de téléchargement, la résolution du dossier racine et le format des
messages d'erreur. Les erreurs HTTP sont traduites en ProviderError pour
que le moteur de demandes n'ait jamais à connaître httpx.
"""

from typing import Any, Optional

import httpx
from loguru import logger

from mediabroker.adapters.api.retry import RateLimitError, request_with_retry
from mediabroker.core.exceptions import ProviderError, ProviderNotFoundError
from mediabroker.core.ports.providers import IProviderAdapter, QueueRecord


def extract_error_message(response: httpx.Response) -> str:
    """
    Extrait le message lisible d'une réponse d'erreur *arr.

    Les backends renvoient soit un objet {"message": ...}, soit une liste
    d'erreurs de validation [{"errorMessage": ...}], soit du texte brut.
    """
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or f"HTTP {response.status_code}"

    if isinstance(data, list):
        messages = [
            str(entry.get("errorMessage") or entry.get("message"))
            for entry in data
            if isinstance(entry, dict) and (entry.get("errorMessage") or entry.get("message"))
        ]
        if messages:
            return "; ".join(messages)
    elif isinstance(data, dict):
        message = data.get("message") or data.get("errorMessage") or data.get("error")
        if message:
            return str(message)
    return response.text.strip() or f"HTTP {response.status_code}"


def parse_queue_records(data: Any, item_key: str, unit_key: str) -> list[QueueRecord]:
    """
    Convertit une page de file en QueueRecord.

    Accepte la réponse paginée {"records": [...]} comme une liste nue.

    Args:
        data: JSON de /api/v3/queue
        item_key: Clé de l'élément parent ("movieId", "seriesId")
        unit_key: Clé de l'unité ("movieId", "episodeId")
    """
    if isinstance(data, dict):
        entries = data.get("records") or []
    elif isinstance(data, list):
        entries = data
    else:
        entries = []

    records = []
    for entry in entries:
        if not isinstance(entry, dict) or entry.get("id") is None:
            continue
        unit_ids: list[int] = []
        if isinstance(entry.get(f"{unit_key}s"), list):
            unit_ids.extend(int(value) for value in entry[f"{unit_key}s"])
        elif entry.get(unit_key) is not None:
            unit_ids.append(int(entry[unit_key]))

        item_id = entry.get(item_key)
        records.append(
            QueueRecord(
                id=int(entry["id"]),
                item_id=int(item_id) if item_id is not None else None,
                size=float(entry.get("size") or 0),
                size_left=float(entry.get("sizeleft") or entry.get("sizeLeft") or 0),
                status=str(entry.get("status") or ""),
                tracked_download_status=str(entry.get("trackedDownloadStatus") or ""),
                tracked_download_state=str(entry.get("trackedDownloadState") or ""),
                related_unit_ids=tuple(unit_ids),
            )
        )
    return records


class ArrClient(IProviderAdapter):
    """
    Client HTTP partagé par RadarrClient et SonarrClient.

    Les sous-classes définissent PROVIDER_NAME, QUEUE_ITEM_KEY,
    QUEUE_UNIT_KEY et les opérations propres à leur ressource.
    """

    PROVIDER_NAME = "arr"
    EXTERNAL_ID_KIND = "tmdb"
    QUEUE_ITEM_KEY = "movieId"
    QUEUE_UNIT_KEY = "movieId"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        root_folder: Optional[str] = None,
        quality_profile_id: int = 1,
        queue_page_size: int = 200,
        timeout: float = 30.0,
        max_attempts: int = 3,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._root_folder = root_folder
        self._quality_profile_id = quality_profile_id
        self._queue_page_size = queue_page_size
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def name(self) -> str:
        return self.PROVIDER_NAME

    @property
    def external_id_kind(self) -> str:
        """Type d'identifiant externe corrélé au catalogue."""
        return self.EXTERNAL_ID_KIND

    def _get_client(self) -> httpx.AsyncClient:
        """Retourne le client HTTP, le crée si nécessaire (lazy init)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={"X-Api-Key": self._api_key, "Accept": "application/json"},
                timeout=self._timeout,
            )
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        error_cls: type[ProviderError] = ProviderError,
        required: bool = False,
    ) -> Any:
        """
        Appelle le backend et retourne le JSON décodé.

        Un corps vide donne None, sauf si required est vrai.

        Raises:
            ProviderNotFoundError: Réponse 404
            error_cls: Toute autre erreur HTTP ou réseau, corps non JSON,
                ou corps vide alors que required est vrai
        """
        kwargs: dict[str, Any] = {}
        if params is not None:
            kwargs["params"] = params
        if json is not None:
            kwargs["json"] = json

        logger.debug("Appel backend", provider=self.name, method=method, path=path)
        try:
            response = await request_with_retry(
                self._get_client(),
                method,
                path,
                max_attempts=self._max_attempts,
                **kwargs,
            )
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            message = extract_error_message(e.response)
            if status == 404:
                raise ProviderNotFoundError(message, provider=self.name, status_code=404) from e
            raise error_cls(message, provider=self.name, status_code=status) from e
        except RateLimitError as e:
            raise error_cls(str(e), provider=self.name, status_code=429) from e
        except httpx.TransportError as e:
            raise error_cls(
                f"{self.name} unreachable: {e}", provider=self.name, status_code=None
            ) from e

        if not response.content:
            data = None
        else:
            try:
                data = response.json()
            except ValueError as e:
                # Page HTML d'un proxy d'authentification, par exemple
                raise error_cls(
                    f"{self.name} returned a non-JSON response for {path}",
                    provider=self.name,
                    status_code=response.status_code,
                ) from e
        if data is None and required:
            raise error_cls(
                f"{self.name} returned an empty response for {path}",
                provider=self.name,
                status_code=response.status_code,
            )
        return data

    async def _resolve_root_folder(self) -> str:
        """
        Chemin du dossier racine à utiliser pour un ajout.

        Préfère le dossier configuré s'il existe côté backend, sinon le premier.
        """
        roots = await self._request("GET", "/api/v3/rootfolder")
        if not isinstance(roots, list) or not roots:
            raise ProviderError(
                f"No {self.name} root folders are configured", provider=self.name
            )
        for root in roots:
            if root.get("path") == self._root_folder:
                return root["path"]
        return roots[0]["path"]

    async def list_queue(self) -> list[QueueRecord]:
        data = await self._request(
            "GET",
            "/api/v3/queue",
            params={"page": 1, "pageSize": self._queue_page_size},
        )
        return parse_queue_records(data, self.QUEUE_ITEM_KEY, self.QUEUE_UNIT_KEY)

    async def delete_queue_item(self, queue_id: int) -> None:
        await self._request("DELETE", f"/api/v3/queue/{queue_id}")

    async def _command(self, body: dict[str, Any]) -> None:
        await self._request("POST", "/api/v3/command", json=body)

    async def close(self) -> None:
        """Ferme le client HTTP."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

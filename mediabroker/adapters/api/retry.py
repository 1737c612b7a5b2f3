"""
Retry avec backoff exponentiel pour les appels aux backends HTTP.

Deux familles d'erreurs sont relancées :
- 429 Too Many Requests, converti en RateLimitError
- erreurs de transport transitoires (connexion refusée, timeout réseau)

Les autres réponses d'erreur (4xx, 5xx) sont propagées sans retry : le
moteur de demandes décide lui-même de ce qui est récupérable.

Usage:
    response = await request_with_retry(client, "GET", "/api/v3/series")
"""

from typing import Optional

import httpx
from loguru import logger
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

# Erreurs réseau sans réponse HTTP, relancées telles quelles
TRANSIENT_ERRORS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.RemoteProtocolError,
)


class RateLimitError(Exception):
    """
    Le backend a répondu 429 Too Many Requests.

    Attributes:
        retry_after: Secondes indiquées par le header Retry-After, ou None
    """

    def __init__(self, retry_after: Optional[int] = None) -> None:
        self.retry_after = retry_after
        super().__init__(f"Rate limited. Retry after: {retry_after}s")


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.debug(
        "Nouvel essai HTTP",
        attempt=state.attempt_number,
        error=type(exc).__name__ if exc else None,
    )


def with_retry(max_attempts: int = 5, max_wait: int = 60):
    """
    Décorateur relançant sur RateLimitError et erreurs de transport.

    wait_random_exponential ajoute du jitter pour que plusieurs instances
    ne relancent pas en même temps.

    Args:
        max_attempts: Nombre maximum de tentatives (défaut: 5)
        max_wait: Délai maximum entre deux tentatives en secondes (défaut: 60)
    """
    return retry(
        retry=retry_if_exception_type((RateLimitError, *TRANSIENT_ERRORS)),
        wait=wait_random_exponential(multiplier=1, min=1, max=max_wait),
        stop=stop_after_attempt(max_attempts),
        before_sleep=_log_retry,
        reraise=True,
    )


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        # Format date HTTP non géré
        return None


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    max_attempts: int = 5,
    **kwargs,
) -> httpx.Response:
    """
    Exécute une requête HTTP avec retry automatique.

    Args:
        client: Client httpx async
        method: Méthode HTTP (GET, POST, PUT, DELETE)
        url: URL ou chemin relatif à la base_url du client
        max_attempts: Nombre maximum de tentatives
        **kwargs: Arguments transmis à client.request()

    Returns:
        httpx.Response en cas de succès

    Raises:
        RateLimitError: 429 persistant après épuisement des tentatives
        httpx.HTTPStatusError: Autres erreurs HTTP
        httpx.TransportError: Erreur réseau persistante
    """

    @with_retry(max_attempts=max_attempts)
    async def _do_request() -> httpx.Response:
        response = await client.request(method, url, **kwargs)
        if response.status_code == 429:
            raise RateLimitError(_parse_retry_after(response.headers.get("Retry-After")))
        response.raise_for_status()
        return response

    return await _do_request()

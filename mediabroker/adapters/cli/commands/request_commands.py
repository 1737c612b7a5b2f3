"""
Commandes CLI de gestion des demandes (requests, request-movie, request-episodes,
approve, deny, delete).
"""

import asyncio
from typing import Annotated, NoReturn, Optional

import typer
from rich.table import Table

from mediabroker.adapters.cli.helpers import (
    cli_requester,
    console,
    print_outcome,
    with_container,
)
from mediabroker.core.entities.request import RequestStatus
from mediabroker.core.exceptions import MediaBrokerError
from mediabroker.core.value_objects.outcomes import OutcomeKind, RequestOutcome

UserOption = Annotated[
    str,
    typer.Option("--user", "-u", help="Identifiant du demandeur"),
]
AdminOption = Annotated[
    bool,
    typer.Option(
        "--admin/--no-admin",
        help="Agir en administrateur (soumission directe) ou en simple utilisateur",
    ),
]
QualityOption = Annotated[
    Optional[int],
    typer.Option("--quality-profile", help="Profil de qualite du backend"),
]


def _finish(outcome: RequestOutcome) -> None:
    print_outcome(outcome)
    if outcome.kind == OutcomeKind.FAILED:
        raise typer.Exit(1)


def _fail(error: MediaBrokerError) -> NoReturn:
    console.print(f"[red]Erreur: {error}[/red]")
    raise typer.Exit(1)


def request_movie(
    tmdb_id: Annotated[int, typer.Argument(help="Identifiant TMDB du film")],
    user: UserOption = "cli",
    admin: AdminOption = True,
    quality_profile: QualityOption = None,
) -> None:
    """
    Demande un film.

    Exemples:
      mediabroker request-movie 603
      mediabroker request-movie 603 --no-admin --user alice
    """
    asyncio.run(_request_movie_async(tmdb_id, user, admin, quality_profile))


@with_container()
async def _request_movie_async(
    container, tmdb_id: int, user: str, admin: bool, quality_profile: Optional[int]
) -> None:
    service = container.lifecycle_service()
    try:
        outcome = await service.request_movie(
            tmdb_id, cli_requester(user, admin), quality_profile_id=quality_profile
        )
    except MediaBrokerError as e:
        _fail(e)
    _finish(outcome)


def request_episodes(
    tmdb_id: Annotated[int, typer.Argument(help="Identifiant TMDB de la serie")],
    season: Annotated[int, typer.Argument(help="Numero de saison")],
    episodes: Annotated[list[int], typer.Argument(help="Numeros d'episodes")],
    user: UserOption = "cli",
    admin: AdminOption = True,
    quality_profile: QualityOption = None,
) -> None:
    """
    Demande des episodes d'une saison.

    Exemples:
      mediabroker request-episodes 1399 2 1 2 3
    """
    asyncio.run(_request_episodes_async(tmdb_id, season, episodes, user, admin, quality_profile))


@with_container()
async def _request_episodes_async(
    container,
    tmdb_id: int,
    season: int,
    episodes: list[int],
    user: str,
    admin: bool,
    quality_profile: Optional[int],
) -> None:
    service = container.lifecycle_service()
    try:
        outcome = await service.request_episodes(
            tmdb_id,
            season,
            episodes,
            cli_requester(user, admin),
            quality_profile_id=quality_profile,
        )
    except MediaBrokerError as e:
        _fail(e)
    _finish(outcome)


def approve(
    request_id: Annotated[str, typer.Argument(help="Identifiant de la demande")],
    user: UserOption = "cli",
) -> None:
    """Approuve une demande en attente et la soumet au backend."""
    asyncio.run(_approve_async(request_id, user))


@with_container()
async def _approve_async(container, request_id: str, user: str) -> None:
    service = container.lifecycle_service()
    try:
        outcome = await service.approve(request_id, cli_requester(user, True))
    except MediaBrokerError as e:
        _fail(e)
    _finish(outcome)


def deny(
    request_id: Annotated[str, typer.Argument(help="Identifiant de la demande")],
    user: UserOption = "cli",
) -> None:
    """Refuse une demande en attente."""
    asyncio.run(_deny_async(request_id, user))


@with_container()
async def _deny_async(container, request_id: str, user: str) -> None:
    service = container.lifecycle_service()
    try:
        outcome = await service.deny(request_id, cli_requester(user, True))
    except MediaBrokerError as e:
        _fail(e)
    _finish(outcome)


def delete(
    request_id: Annotated[str, typer.Argument(help="Identifiant de la demande")],
    user: UserOption = "cli",
) -> None:
    """
    Supprime une demande et nettoie les backends.

    Le film ou la serie est retire de Radarr/Sonarr avec ses fichiers, et
    ajoute a la liste d'exclusion.
    """
    asyncio.run(_delete_async(request_id, user))


@with_container()
async def _delete_async(container, request_id: str, user: str) -> None:
    service = container.lifecycle_service()
    try:
        outcome = await service.delete(request_id, cli_requester(user, True))
    except MediaBrokerError as e:
        _fail(e)
    # La CLI attend le nettoyage avant de fermer les clients HTTP
    with console.status("[cyan]Nettoyage des backends..."):
        await service.wait_for_cleanups()
    _finish(outcome)


def list_requests(
    status: Annotated[
        Optional[list[RequestStatus]],
        typer.Option("--status", "-s", help="Filtrer par statut (repetable)"),
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Nombre maximum")] = 50,
) -> None:
    """Liste les demandes les plus recentes."""
    asyncio.run(_list_requests_async(status, limit))


@with_container()
async def _list_requests_async(
    container, status: Optional[list[RequestStatus]], limit: int
) -> None:
    repo = container.request_repository()
    requests = repo.list_requests(statuses=status, limit=limit)

    if not requests:
        console.print("[yellow]Aucune demande.[/yellow]")
        raise typer.Exit(0)

    table = Table(title=f"Demandes ({len(requests)})")
    table.add_column("ID", style="dim")
    table.add_column("Type")
    table.add_column("TMDB", justify="right")
    table.add_column("Titre")
    table.add_column("Elements")
    table.add_column("Statut")
    table.add_column("Par")
    table.add_column("Raison", overflow="fold")

    for request in requests:
        if request.episode_keys:
            units = ", ".join(str(key) for key in request.episode_keys)
        else:
            units = "film"
        table.add_row(
            request.id,
            request.kind.value,
            str(request.tmdb_id),
            request.title or "-",
            units,
            request.status.value,
            request.requested_by,
            request.status_reason or "",
        )
    console.print(table)

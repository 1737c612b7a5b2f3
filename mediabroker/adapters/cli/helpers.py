"""
Utilitaires partages pour les commandes CLI de MediaBroker.

Ce module fournit :
- console : instance Rich Console partagee
- with_container : decorateur injectant un container initialise
- cli_requester : identite de l'operateur CLI
- print_outcome : affichage d'un RequestOutcome
- close_clients : fermeture des clients HTTP ouverts par une commande
"""

from functools import wraps

from rich.console import Console

from mediabroker.container import Container
from mediabroker.core.value_objects.outcomes import OutcomeKind, RequestOutcome, Requester

console = Console()

# Couleur d'affichage par nature de resultat
_OUTCOME_STYLES = {
    OutcomeKind.SUBMITTED: "green",
    OutcomeKind.PENDING: "yellow",
    OutcomeKind.CONFLICT: "yellow",
    OutcomeKind.ALREADY_EXISTS: "cyan",
    OutcomeKind.FAILED: "red",
    OutcomeKind.ALREADY_RESOLVED: "dim",
    OutcomeKind.DENIED: "magenta",
    OutcomeKind.REMOVED: "magenta",
}


def with_container(requires_db: bool = True):
    """
    Decorateur qui injecte un container initialise en premier argument.

    Args:
        requires_db: Si True (defaut), initialise la base de donnees.

    Usage:
        @with_container()
        async def my_command(container, ...):
            config = container.config()
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            container = Container()
            if requires_db:
                container.database.init()
            try:
                return await func(container, *args, **kwargs)
            finally:
                await close_clients(container)
        return wrapper
    return decorator


def cli_requester(user: str, admin: bool) -> Requester:
    """Identite utilisee pour les actions lancees depuis la CLI."""
    return Requester(id=user, username=user, is_admin=admin)


def print_outcome(outcome: RequestOutcome) -> None:
    """Affiche le resultat d'une operation sur une demande."""
    style = _OUTCOME_STYLES.get(outcome.kind, "white")
    line = f"[{style}]{outcome.kind.value}[/{style}]"
    if outcome.request_id:
        line += f"  demande [bold]{outcome.request_id}[/bold]"
    if outcome.status:
        line += f"  statut {outcome.status.value}"
    console.print(line)
    if outcome.conflicts:
        labels = ", ".join(str(key) for key in outcome.conflicts)
        console.print(f"  [yellow]Deja demandes :[/yellow] {labels}")
    if outcome.message:
        console.print(f"  {outcome.message}")


async def close_clients(container: Container) -> None:
    """Ferme les clients HTTP et le cache si la commande les a instancies."""
    for provider in (container.radarr_client, container.sonarr_client, container.catalog_client):
        client = provider()
        if client is not None:
            await client.close()
    container.api_cache().close()

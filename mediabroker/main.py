"""
Point d'entrée CLI de MediaBroker.

Initialise le container DI, configure le logging et fournit les commandes CLI.
"""

from typing import Annotated

import typer
from loguru import logger

from . import __version__
from .adapters.cli.commands import (
    approve,
    delete,
    deny,
    history,
    jobs,
    list_requests,
    request_episodes,
    request_movie,
    run_job,
    scheduler,
    sync,
)
from .config import Settings
from .container import Container
from .logging_config import configure_logging

app = typer.Typer(
    name="mediabroker",
    help="Courtier de demandes de films et de series pour Radarr et Sonarr",
)
container = Container()

# Etat global pour les options de verbosite
state = {"verbose": 0, "quiet": False}


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Augmenter la verbosite (-v, -vv, -vvv)"
        ),
    ] = 0,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Mode silencieux (erreurs uniquement)"),
    ] = False,
) -> None:
    """MediaBroker - Gestion des demandes de medias."""
    if quiet:
        state["quiet"] = True
    else:
        state["verbose"] = verbose
    if quiet or verbose:
        settings = get_config()
        configure_logging(settings, level=_effective_log_level(settings.log_level))


# Demandes
app.command(name="requests")(list_requests)
app.command(name="request-movie")(request_movie)
app.command(name="request-episodes")(request_episodes)
app.command()(approve)
app.command()(deny)
app.command()(delete)

# Jobs planifies
app.command()(scheduler)
app.command()(sync)
app.command()(jobs)
app.command(name="run-job")(run_job)
app.command()(history)


def get_config() -> Settings:
    """Récupère les paramètres de l'application depuis le container DI."""
    return container.config()


@app.command()
def info() -> None:
    """Affiche la configuration actuelle."""
    config = get_config()
    logger.info("Configuration MediaBroker")
    typer.echo(f"Base de données : {config.database_url}")
    typer.echo(f"Radarr : {config.radarr_url if config.radarr_enabled else 'désactivé'}")
    typer.echo(f"Sonarr : {config.sonarr_url if config.sonarr_enabled else 'désactivé'}")
    typer.echo(f"API TMDB : {'activée' if config.tmdb_enabled else 'désactivée'}")
    typer.echo(f"Tick du scheduler : {config.scheduler_tick_seconds}s")
    typer.echo(f"Fuseau des jobs : {config.jobs_timezone or 'UTC'}")
    typer.echo(f"Niveau de log : {config.log_level}")


@app.command()
def version() -> None:
    """Affiche les informations de version."""
    typer.echo(f"MediaBroker v{__version__}")


def _effective_log_level(configured: str) -> str:
    if state["quiet"]:
        return "ERROR"
    return {0: configured, 1: "INFO", 2: "DEBUG"}.get(state["verbose"], "TRACE")


def main() -> None:
    """Point d'entrée de l'application."""
    # Charge la configuration et configure le logging
    settings = container.config()
    configure_logging(settings)

    # Initialise la base de données (crée les tables et les jobs par défaut)
    container.database.init()

    logger.info("Démarrage de MediaBroker", version=__version__)

    # Lance la CLI
    app()


if __name__ == "__main__":
    main()

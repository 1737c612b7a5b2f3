"""
Commandes CLI des jobs planifies (scheduler, sync, jobs, run-job, history).
"""

import asyncio
import contextlib
import signal
from typing import Annotated

import typer
from loguru import logger
from rich.table import Table

from mediabroker.adapters.cli.helpers import console, with_container
from mediabroker.core.exceptions import JobNotFoundError


def scheduler(
    once: Annotated[
        bool,
        typer.Option("--once", help="Execute un seul tick puis attend la fin des jobs"),
    ] = False,
) -> None:
    """
    Lance le scheduler des jobs periodiques.

    Plusieurs instances peuvent tourner en parallele : un verrou consultatif
    en base garantit qu'une seule evalue les jobs a chaque tick.
    """
    asyncio.run(_scheduler_async(once))


@with_container()
async def _scheduler_async(container, once: bool) -> None:
    job_scheduler = container.job_scheduler()

    if once:
        result = await job_scheduler.tick()
        await job_scheduler.wait_for_jobs()
        if not result.acquired:
            console.print("[yellow]Verrou detenu par une autre instance, tick ignore.[/yellow]")
        else:
            fired = ", ".join(result.fired) or "aucun"
            console.print(f"[green]Tick termine.[/green] Jobs lances : {fired}")
        return

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # add_signal_handler n'existe pas sous Windows
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    # Les lignes du processus long sont distinguees de celles de la CLI
    logger.configure(extra={"component": "scheduler"})
    console.print("[cyan]Scheduler demarre (Ctrl+C pour arreter)[/cyan]")
    await job_scheduler.run(stop)


def sync() -> None:
    """Execute une passe de reconciliation des demandes."""
    asyncio.run(_sync_async())


@with_container()
async def _sync_async(container) -> None:
    service = container.reconciliation_service()
    with console.status("[cyan]Reconciliation des demandes..."):
        summary = await service.sync_pending_requests()
    console.print(f"[bold]Reconciliation :[/bold] {summary}")
    if summary.errors:
        raise typer.Exit(1)


def jobs() -> None:
    """Affiche les jobs planifies et leur etat."""
    asyncio.run(_jobs_async())


@with_container()
async def _jobs_async(container) -> None:
    repo = container.job_repository()
    job_list = repo.list_jobs()

    if not job_list:
        console.print("[yellow]Aucun job planifie.[/yellow]")
        raise typer.Exit(0)

    table = Table(title="Jobs planifies")
    table.add_column("Nom", style="bold")
    table.add_column("Planification")
    table.add_column("Actif")
    table.add_column("Derniere execution")
    table.add_column("Prochaine execution")
    table.add_column("Echecs", justify="right")
    table.add_column("Derniere erreur", overflow="fold")

    for job in job_list:
        table.add_row(
            job.name,
            f"{job.schedule} ({job.interval_seconds}s)",
            "[green]oui[/green]" if job.enabled else f"[red]non[/red] {job.disabled_reason or ''}",
            job.last_run.isoformat(timespec="seconds") if job.last_run else "-",
            job.next_run.isoformat(timespec="seconds") if job.next_run else "-",
            str(job.failure_count),
            job.last_error or "",
        )
    console.print(table)


def run_job(
    name: Annotated[str, typer.Argument(help="Nom du job (ex: request-sync)")],
) -> None:
    """Execute immediatement un job planifie."""
    asyncio.run(_run_job_async(name))


@with_container()
async def _run_job_async(container, name: str) -> None:
    job_scheduler = container.job_scheduler()
    try:
        executed = await job_scheduler.run_job_now(name)
    except JobNotFoundError as e:
        console.print(f"[red]Erreur: {e}[/red]")
        raise typer.Exit(1)

    if not executed:
        console.print(f"[yellow]{name} est deja en cours.[/yellow]")
        return

    metrics = {m.name: m for m in job_scheduler.metrics()}.get(name)
    if metrics is not None and metrics.last_result == "failure":
        console.print(f"[red]{name} en echec : {metrics.last_error}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]{name} termine.[/green]")


def history(
    name: Annotated[str, typer.Argument(help="Nom du job")],
    limit: Annotated[int, typer.Option("--limit", "-n", help="Nombre d'executions")] = 20,
) -> None:
    """Affiche l'historique d'execution d'un job."""
    asyncio.run(_history_async(name, limit))


@with_container()
async def _history_async(container, name: str, limit: int) -> None:
    runs = container.job_repository().list_job_history(name, limit=limit)
    if not runs:
        console.print(f"[yellow]Aucune execution enregistree pour {name}.[/yellow]")
        raise typer.Exit(0)

    table = Table(title=f"Historique {name}")
    table.add_column("Debut")
    table.add_column("Duree", justify="right")
    table.add_column("Resultat")
    table.add_column("Details", overflow="fold")

    for run in runs:
        status = "[green]succes[/green]" if run.status.value == "success" else "[red]echec[/red]"
        table.add_row(
            run.started_at.isoformat(timespec="seconds"),
            f"{run.duration_ms} ms",
            status,
            run.error or run.details or "",
        )
    console.print(table)

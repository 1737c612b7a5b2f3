"""
Fonctions utilitaires partagées dans le projet MediaBroker.

- utc_now : horodatage UTC naïf, format de stockage de toutes les dates
- truncate_message : borne la taille d'un message d'erreur persisté
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Retourne l'instant courant en UTC, sans tzinfo.

    SQLite ne conserve pas le fuseau : toutes les dates persistées et
    comparées par le scheduler sont donc des UTC naïfs.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def truncate_message(message: str, limit: int = 500) -> str:
    """Tronque un message trop long en conservant son début."""
    if len(message) <= limit:
        return message
    return message[: limit - 3] + "..."

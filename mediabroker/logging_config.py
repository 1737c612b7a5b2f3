"""
Configuration du logging via loguru.

Deux sorties :
- console : lignes colorées, suivies des champs structurés utiles au suivi
  des demandes (request_id, job, provider...) quand il y en a
- fichier : JSON avec rotation, tous niveaux, pour l'analyse a posteriori

Les champs dont le nom évoque un secret (clé d'API Radarr/Sonarr/TMDB)
sont masqués avant d'atteindre les sorties.
"""

import sys
from typing import TYPE_CHECKING, Any, Optional

from loguru import logger

if TYPE_CHECKING:
    from mediabroker.config import Settings

_SECRET_MARKERS = ("api_key", "apikey", "token", "password")
_MASK = "***"

_CONSOLE_PREFIX = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[component]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def _is_secret(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SECRET_MARKERS)


def redact_secrets(record: dict[str, Any]) -> None:
    """Patcher loguru : masque les valeurs des champs sensibles."""
    extra = record["extra"]
    for key in list(extra):
        if _is_secret(key) and extra[key]:
            extra[key] = _MASK


def console_format(record: dict[str, Any]) -> str:
    """
    Format console : préfixe fixe puis `clé=valeur` des champs liés.

    Les accolades sont échappées puisque loguru réinterprète le résultat
    comme un gabarit.
    """
    fields = " ".join(
        f"{key}={value}" for key, value in record["extra"].items() if key != "component"
    )
    suffix = ""
    if fields:
        suffix = " <dim>" + fields.replace("{", "{{").replace("}", "}}").replace("<", r"\<") + "</dim>"
    return _CONSOLE_PREFIX + suffix + "\n{exception}"


def configure_logging(
    settings: "Settings",
    level: Optional[str] = None,
    component: str = "cli",
) -> None:
    """
    (Re)configure les sorties de log.

    Args:
        settings: Paramètres (fichier, rotation, rétention, niveau par défaut)
        level: Niveau console imposé (options -v / -q), sinon settings.log_level
        component: Processus émetteur ("cli", "scheduler"), ajouté à chaque ligne
    """
    # Appel répété possible : la CLI reconfigure selon -v / -q
    logger.remove()
    logger.configure(extra={"component": component}, patcher=redact_secrets)

    logger.add(
        sys.stderr,
        level=level or settings.log_level,
        format=console_format,
        colorize=True,
    )

    log_file = settings.log_file
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_file,
        level="DEBUG",  # appels Radarr/Sonarr compris
        format="{message}",
        serialize=True,
        rotation=settings.log_rotation_size,
        retention=settings.log_retention_count,
        compression="zip",
        enqueue=True,
    )

    logger.debug(
        "Logging configuré",
        log_file=str(log_file),
        rotation=settings.log_rotation_size,
        retention=settings.log_retention_count,
    )

"""
Calcul de la prochaine exécution d'un job.

Trois niveaux, dans l'ordre :
1. Chemin rapide pour les horaires à minute et heure littérales
   ("30 3 * * *", "0 4 * * 1", "0 5 15 * *" avec un jour <= 28)
2. croniter pour toute autre expression à 5 champs
3. Intervalle de repli (now + interval_seconds) si l'expression est invalide

Les dates d'entrée et de sortie sont des UTC naïfs. Le fuseau optionnel
détermine l'heure murale à laquelle l'expression cron est interprétée.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import CroniterBadCronError, croniter
from loguru import logger

_NUMBER = re.compile(r"^\d+$")


def is_cron_schedule(schedule: str) -> bool:
    """Vrai si l'expression comporte 5 champs et que croniter l'accepte."""
    return len(schedule.split()) == 5 and croniter.is_valid(schedule)


def _to_local(now: datetime, tz: Optional[str]) -> datetime:
    """Convertit un UTC naïf vers l'heure locale du fuseau (naïve)."""
    if not tz:
        return now
    try:
        zone = ZoneInfo(tz)
    except ZoneInfoNotFoundError:
        logger.warning("Fuseau inconnu, UTC utilisé", timezone=tz)
        return now
    return now.replace(tzinfo=timezone.utc).astimezone(zone).replace(tzinfo=None)


def _to_utc(local: datetime, tz: Optional[str]) -> datetime:
    if not tz:
        return local
    try:
        zone = ZoneInfo(tz)
    except ZoneInfoNotFoundError:
        return local
    return local.replace(tzinfo=zone).astimezone(timezone.utc).replace(tzinfo=None)


def _simple_next_run(schedule: str, now: datetime) -> Optional[datetime]:
    """
    Prochaine occurrence d'un horaire simple, None si non applicable.

    Reconnaît minute et heure numériques, mois "*", et au plus un des
    deux champs jour (jour du mois <= 28 ou jour de semaine 0-6, 0 = dimanche).
    """
    parts = schedule.split()
    if len(parts) != 5:
        return None
    minute, hour, day_of_month, month, day_of_week = parts
    if month != "*":
        return None
    if not (_NUMBER.match(minute) and _NUMBER.match(hour)):
        return None
    for field in (day_of_month, day_of_week):
        if field != "*" and not _NUMBER.match(field):
            return None

    minute_value, hour_value = int(minute), int(hour)
    if minute_value > 59 or hour_value > 23:
        return None

    candidate = now.replace(hour=hour_value, minute=minute_value, second=0, microsecond=0)

    if day_of_month == "*" and day_of_week == "*":
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    if day_of_month == "*":
        target = int(day_of_week)
        if target > 6:
            return None
        # isoweekday : lundi=1 ... dimanche=7 ; cron : dimanche=0
        current = candidate.isoweekday() % 7
        days_ahead = (target - current) % 7
        if days_ahead == 0 and candidate <= now:
            days_ahead = 7
        return candidate + timedelta(days=days_ahead)

    if day_of_week == "*":
        target = int(day_of_month)
        if target < 1 or target > 28:
            return None
        candidate = candidate.replace(day=target)
        if candidate <= now:
            year = candidate.year + (1 if candidate.month == 12 else 0)
            month_value = 1 if candidate.month == 12 else candidate.month + 1
            candidate = candidate.replace(year=year, month=month_value)
        return candidate

    return None


def compute_next_run(
    schedule: str,
    interval_seconds: int,
    now: datetime,
    tz: Optional[str] = None,
) -> datetime:
    """
    Calcule la prochaine exécution strictement postérieure à now.

    Args:
        schedule: Expression cron à 5 champs
        interval_seconds: Intervalle de repli
        now: Instant de référence (UTC naïf)
        tz: Fuseau IANA d'interprétation du cron (UTC si absent)

    Returns:
        Date UTC naïve de la prochaine exécution
    """
    fallback = now + timedelta(seconds=interval_seconds)
    local_now = _to_local(now, tz)

    simple = _simple_next_run(schedule, local_now)
    if simple is not None:
        return _to_utc(simple, tz)

    try:
        local_next = croniter(schedule, local_now).get_next(datetime)
    except (CroniterBadCronError, ValueError, KeyError) as e:
        logger.debug("Expression cron invalide, intervalle utilisé", schedule=schedule, error=str(e))
        return fallback
    return _to_utc(local_next, tz)

"""
Entités métier représentant les concepts centraux du domaine.

Exports :
- MediaRequest : Demande d'un film ou d'épisodes
- RequestItem : Unité demandée (film, épisode)
- RequestKind / RequestStatus : Type et statut d'une demande
- EpisodeKey : Couple (saison, épisode)
- aggregate_status : Statut d'une demande dérivé de ses éléments
- ScheduledJob / JobRun : Jobs planifiés et historique d'exécution
"""

from mediabroker.core.entities.job import JobRun, JobRunStatus, ScheduledJob
from mediabroker.core.entities.request import (
    ACTIVE_STATUSES,
    NON_TERMINAL_STATUSES,
    EpisodeKey,
    MediaRequest,
    RequestItem,
    RequestKind,
    RequestStatus,
    aggregate_status,
)

__all__ = [
    "ACTIVE_STATUSES",
    "NON_TERMINAL_STATUSES",
    "EpisodeKey",
    "MediaRequest",
    "RequestItem",
    "RequestKind",
    "RequestStatus",
    "aggregate_status",
    "JobRun",
    "JobRunStatus",
    "ScheduledJob",
]

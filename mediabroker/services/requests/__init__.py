"""
Package du moteur de cycle de vie des demandes.

Réexporte les symboles principaux (from mediabroker.services.requests import ...).
"""

from .classifier import AlreadyExistsClassifier
from .dataclasses import LifecycleConfig, SubmissionResult
from .lifecycle_service import RequestLifecycleService

__all__ = [
    "AlreadyExistsClassifier",
    "LifecycleConfig",
    "RequestLifecycleService",
    "SubmissionResult",
]

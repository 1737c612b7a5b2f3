"""
Implémentations SQLModel des repositories.

Chaque repository :
- Hérite de l'interface ABC correspondante du domaine (core/ports/repositories.py)
- Reçoit une session SQLModel via injection de dépendances
- Convertit entre entités de domaine (dataclass) et modèles DB (SQLModel)
"""

from mediabroker.infrastructure.persistence.repositories.job_repository import (
    SQLModelJobRepository,
)
from mediabroker.infrastructure.persistence.repositories.request_repository import (
    SQLModelRequestRepository,
)

__all__ = [
    "SQLModelRequestRepository",
    "SQLModelJobRepository",
]

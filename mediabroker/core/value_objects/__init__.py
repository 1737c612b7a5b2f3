"""
Objets valeur immutables representant des concepts du domaine sans identite.

Exports :
- OutcomeKind : Nature du resultat d'une operation sur une demande
- RequestOutcome : Resultat d'une operation du moteur de demandes
- Requester : Utilisateur a l'origine d'une action
- SyncSummary : Compteurs d'une passe de reconciliation
"""

from mediabroker.core.value_objects.outcomes import (
    OutcomeKind,
    RequestOutcome,
    Requester,
    SyncSummary,
)

__all__ = [
    "OutcomeKind",
    "RequestOutcome",
    "Requester",
    "SyncSummary",
]

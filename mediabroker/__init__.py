"""
MediaBroker - Courtier de demandes de films et de séries.

Ce package transmet les demandes des utilisateurs aux gestionnaires
d'acquisition (Radarr pour les films, Sonarr pour les séries), suit leur
traitement et réconcilie périodiquement leur statut avec l'état des
téléchargements.

Architecture : Hexagonale (Ports et Adaptateurs)
- core/ : Couche domaine (entités, ports, objets valeur)
- services/ : Couche application (cycle de vie des demandes, réconciliation, scheduler)
- adapters/ : Couche infrastructure (CLI, clients API, notifications)
- infrastructure/ : Persistance SQLModel et verrou consultatif
"""

__version__ = "0.1.0"

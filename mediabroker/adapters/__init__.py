"""
Couche adaptateurs (infrastructure).

Les adaptateurs implémentent les ports définis dans core/ports/ et fournissent
des implémentations concrètes pour les systèmes externes.

Sous-packages :
- api/ : Clients HTTP Radarr, Sonarr et TMDB, cache et retry
- cli/ : Interface ligne de commande (Typer)
- notifications.py : Diffusion des événements de cycle de vie

Chaque adaptateur dépend de core/ mais core/ ne dépend jamais des adaptateurs.
"""

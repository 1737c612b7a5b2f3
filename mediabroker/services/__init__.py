"""
Couche services applicatifs (cas d'usage).

- requests/ : Cycle de vie des demandes (création, approbation, refus, suppression)
- reconciliation.py : Synchronisation périodique avec les files des backends
- scheduler/ : Jobs périodiques sérialisés par verrou consultatif
- keyed_mutex.py : Verrou asyncio par clé de titre

Les services dépendent des ports de core/, jamais des implémentations
concrètes de adapters/.
"""

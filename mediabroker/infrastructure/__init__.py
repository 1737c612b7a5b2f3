"""
Couche infrastructure de MediaBroker.

Ce module contient les implementations concretes des interfaces de
persistance definies dans la couche domaine (ports) :

- persistence/ : Stockage SQLModel (modeles, repositories, migrations)
  et verrou consultatif du scheduler

Architecture hexagonale : SQLite en local, PostgreSQL quand plusieurs
instances du scheduler partagent la meme base.
"""

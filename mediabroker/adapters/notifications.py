"""
Diffuseur de notifications par journalisation.

Implémentation par défaut d'INotificationDispatcher : chaque événement est
écrit dans les logs loguru avec son contenu en champs structurés. Les
canaux réels (Discord, e-mail, webhook) se branchent en implémentant le
même port.
"""

from typing import Any

from loguru import logger

from mediabroker.core.ports.notifier import INotificationDispatcher


class LoggingNotificationDispatcher(INotificationDispatcher):
    """Écrit les événements de cycle de vie dans les logs."""

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        logger.bind(event_name=event, **payload).info("Notification : {}", event)

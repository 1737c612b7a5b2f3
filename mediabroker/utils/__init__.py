"""
Utilitaires partagés pour MediaBroker.
"""

from mediabroker.utils.helpers import truncate_message, utc_now

__all__ = [
    "utc_now",
    "truncate_message",
]

"""
Détection des refus « déjà présent » des backends.

Radarr et Sonarr n'exposent pas de code d'erreur structuré quand un titre
est déjà enregistré : seul le texte du message le signale. Le motif est
configurable (MEDIABROKER_ALREADY_EXISTS_PATTERN) et un prédicat
personnalisé peut remplacer l'expression régulière.
"""

import re
from typing import Callable, Optional

from mediabroker.config import DEFAULT_ALREADY_EXISTS_PATTERN
from mediabroker.core.exceptions import ProviderError


class AlreadyExistsClassifier:
    """
    Prédicat appliqué aux ProviderAddError.

    Example:
        classifier = AlreadyExistsClassifier()
        classifier.matches(ProviderAddError("This series has already been added"))  # True
    """

    def __init__(
        self,
        pattern: str = DEFAULT_ALREADY_EXISTS_PATTERN,
        predicate: Optional[Callable[[ProviderError], bool]] = None,
    ) -> None:
        self._regex = re.compile(pattern, re.IGNORECASE)
        self._predicate = predicate

    def matches(self, error: ProviderError) -> bool:
        """Vrai si l'erreur signale un élément déjà présent dans le backend."""
        if self._predicate is not None:
            return self._predicate(error)
        return bool(self._regex.search(str(error)))

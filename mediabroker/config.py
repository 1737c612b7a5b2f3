"""
Configuration de l'application via pydantic-settings.

La configuration est chargée depuis les variables d'environnement avec le préfixe
MEDIABROKER_, et peut optionnellement être fournie via un fichier .env.

Les backends (Radarr, Sonarr) et le catalogue TMDB sont optionnels : une URL ou
une clé absente désactive l'intégration correspondante.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Trouver le fichier .env à la racine du projet (parent de mediabroker/)
_PROJECT_ROOT = Path(__file__).parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"

DEFAULT_ALREADY_EXISTS_PATTERN = r"already been added|already exists|already in"


class Settings(BaseSettings):
    """Paramètres de l'application avec support des variables d'environnement.

    Tous les paramètres peuvent être surchargés via des variables d'environnement
    avec le préfixe MEDIABROKER_.
    Exemple : MEDIABROKER_SONARR_URL=http://localhost:8989
    """

    model_config = SettingsConfigDict(
        env_prefix="MEDIABROKER_",
        env_file=_ENV_FILE if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Base de données
    database_url: str = Field(default="sqlite:///mediabroker.db")

    # Backend films (Radarr)
    radarr_url: Optional[str] = Field(default=None)
    radarr_api_key: Optional[str] = Field(default=None)
    radarr_root_folder: Optional[str] = Field(default=None)
    radarr_quality_profile_id: int = Field(default=1, ge=1)

    # Backend séries (Sonarr)
    sonarr_url: Optional[str] = Field(default=None)
    sonarr_api_key: Optional[str] = Field(default=None)
    sonarr_root_folder: Optional[str] = Field(default=None)
    sonarr_quality_profile_id: int = Field(default=1, ge=1)
    sonarr_language_profile_id: int = Field(default=1, ge=1)

    # Catalogue (OPTIONNEL)
    tmdb_api_key: Optional[str] = Field(default=None)
    cache_dir: Path = Field(default=Path(".cache/api"))

    # Timeouts et retry HTTP
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    http_max_attempts: int = Field(default=3, ge=1)

    # Cycle de vie des demandes
    poll_attempts_new: int = Field(default=4, ge=1)
    poll_attempts_existing: int = Field(default=1, ge=1)
    poll_delay_seconds: float = Field(default=1.2, ge=0)
    already_exists_pattern: str = Field(default=DEFAULT_ALREADY_EXISTS_PATTERN)

    # Réconciliation
    sync_batch_limit: int = Field(default=100, ge=1)
    queue_page_size: int = Field(default=200, ge=1)

    # Scheduler
    scheduler_tick_seconds: int = Field(default=60, ge=1)
    scheduler_lock_id: int = Field(default=94810234)
    scheduler_lock_ttl_seconds: int = Field(default=300, ge=1)
    scheduler_max_failures: int = Field(default=3, ge=1)
    scheduler_disable_on_max_failures: bool = Field(default=False)
    jobs_timezone: Optional[str] = Field(default=None)

    # Logging (fichier + stderr, rotation 10MB, 5 fichiers de rétention)
    log_level: str = Field(default="INFO")
    log_file: Path = Field(default=Path("logs/mediabroker.log"))
    log_rotation_size: str = Field(default="10 MB")
    log_retention_count: int = Field(default=5)

    @field_validator("log_file", "cache_dir", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        """Étend ~ vers le répertoire home dans les chemins."""
        return Path(v).expanduser()

    @field_validator("radarr_url", "sonarr_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        """Normalise les URLs de base (sans slash final)."""
        if v is None or v == "":
            return None
        return str(v).rstrip("/")

    @property
    def radarr_enabled(self) -> bool:
        """Vérifie si Radarr est configuré."""
        return bool(self.radarr_url and self.radarr_api_key)

    @property
    def sonarr_enabled(self) -> bool:
        """Vérifie si Sonarr est configuré."""
        return bool(self.sonarr_url and self.sonarr_api_key)

    @property
    def tmdb_enabled(self) -> bool:
        """Vérifie si l'API TMDB est configurée."""
        return self.tmdb_api_key is not None

from __future__ import annotations
import os
from dataclasses import dataclass, field

DATA_DIR = os.getenv("WIKICRAWL_DATA", os.path.abspath("./data"))

def _get_env_var(primary: str, fallback: str, default: str = None):
    """Get environment variable, checking primary name first, then fallback name.

    Args:
        primary: Primary environment variable name (e.g., WIKICRAWL_POSTGRES_HOST)
        fallback: Fallback environment variable name from the legacy .env layout (e.g., WIKICRAWL_HOST)
        default: Default value if neither is set

    Returns:
        Environment variable value or default
    """
    value = os.getenv(primary)
    if value is not None:
        return value
    value = os.getenv(fallback)
    if value is not None:
        return value
    return default

# Namespaces of the French Wikipedia that are not articles (lowercase, with the trailing colon)
WIKIPEDIA_NAMESPACES = [
    "média:",
    "spécial:",
    "discussion:",
    "utilisateur:",
    "discussion_utilisateur:",
    "wikipédia:",
    "discussion_wikipédia:",
    "fichier:",
    "discussion_fichier:",
    "mediawiki:",
    "discussion_mediawiki:",
    "modèle:",
    "discussion_modèle:",
    "aide:",
    "discussion_aide:",
    "catégorie:",
    "discussion_catégorie:",
    "portail:",
    "discussion_portail:",
    "projet:",
    "discussion_projet:",
    "référence:",
    "discussion_référence:",
    "timedtext:",
    "timedtext_talk:",
    "module:",
    "discussion_module:",
    "sujet:",
]

@dataclass
class HttpConfig:
    user_agent: str = os.getenv("WIKICRAWL_UA", "wikicrawl/0.3 (+https://github.com/wikicrawl/wikicrawl)")
    timeout: float = float(os.getenv("WIKICRAWL_TIMEOUT", "30"))
    http_backend: str = os.getenv("WIKICRAWL_HTTP_BACKEND", "httpx")  # "httpx" or "aiohttp"
    enable_http2: bool = os.getenv("WIKICRAWL_HTTP2", "1") == "1"

    def __post_init__(self):
        self.http_backend = (self.http_backend or "httpx").lower()

@dataclass
class WikiConfig:
    host: str = os.getenv("WIKICRAWL_WIKI_HOST", "fr.m.wikipedia.org")
    search_page: str = os.getenv("WIKICRAWL_SEARCH_PAGE", "Spécial:Recherche")
    namespaces: list[str] = field(default_factory=lambda: list(WIKIPEDIA_NAMESPACES))
    transient_marker: str = "<title>Wikimedia Error</title>"

    @property
    def base_url(self) -> str:
        return f"https://{self.host}"

    @property
    def api_url(self) -> str:
        return f"https://{self.host}/w/api.php"

@dataclass
class CrawlConfig:
    batch_size: int = int(_get_env_var("WIKICRAWL_BATCH_SIZE", "WIKICRAWL_EXPLORING_PAGES", "10"))
    resolver_concurrency: int = int(_get_env_var("WIKICRAWL_RESOLVER_CONCURRENCY", "WIKICRAWL_NEW_PAGES", "80"))
    retry_cooldown: float = float(os.getenv("WIKICRAWL_RETRY_COOLDOWN", "3.0"))
    retry_increment: float = float(os.getenv("WIKICRAWL_RETRY_INCREMENT", "1.0"))
    api_max_retries: int = int(os.getenv("WIKICRAWL_API_MAX_RETRIES", "5"))
    crash_retry_delay: float = float(os.getenv("WIKICRAWL_CRASH_DELAY", "10.0"))
    circuit_breaker_threshold: int = int(os.getenv("WIKICRAWL_CB_THRESHOLD", "5"))
    path_chunk_size: int = int(os.getenv("WIKICRAWL_PATH_CHUNK", "8192"))
    seed_id: int = int(os.getenv("WIKICRAWL_SEED_ID", "1095"))
    seed_title: str = os.getenv("WIKICRAWL_SEED_TITLE", "France")
    log_dir: str = os.getenv("WIKICRAWL_LOG_DIR", "logs")
    show_progress: bool = os.getenv("WIKICRAWL_PROGRESS", "1") == "1"

def get_database_config(backend: str = None) -> 'DatabaseConfig':
    """Get database configuration based on environment variables.

    Reads environment variables directly to support runtime changes (e.g., from command-line args).
    """
    from .database import DatabaseConfig

    backend = backend or _get_env_var("WIKICRAWL_DB_BACKEND", "WIKICRAWL_BACKEND", "sqlite")

    if backend == "postgresql":
        return DatabaseConfig(
            backend="postgresql",
            postgres_host=_get_env_var("WIKICRAWL_POSTGRES_HOST", "WIKICRAWL_HOST", "localhost"),
            postgres_port=int(_get_env_var("WIKICRAWL_POSTGRES_PORT", "WIKICRAWL_PORT", "5432")),
            postgres_database=_get_env_var("WIKICRAWL_POSTGRES_DB", "WIKICRAWL_DB", "wikicrawl"),
            postgres_user=_get_env_var("WIKICRAWL_POSTGRES_USER", "WIKICRAWL_USER", "wikicrawl"),
            postgres_password=_get_env_var("WIKICRAWL_POSTGRES_PASSWORD", "WIKICRAWL_PASSWORD", ""),
        )
    else:
        sqlite_path = _get_env_var("WIKICRAWL_SQLITE_PATH", "WIKICRAWL_DB_PATH", os.path.join(DATA_DIR, "wikicrawl.db"))
        if sqlite_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(sqlite_path)), exist_ok=True)
        return DatabaseConfig(backend="sqlite", sqlite_path=sqlite_path)

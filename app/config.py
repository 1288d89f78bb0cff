"""
Environment configuration for Codedrop.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent

STORAGE_BACKENDS = ("memory", "json", "sqlite", "kv")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    """Runtime settings, read once at process start."""
    debug: bool = False
    production_domain: str = "codedrop.example.com"
    allowed_hosts: List[str] = field(default_factory=list)
    storage_backend: str = "json"
    data_dir: Path = BASE_DIR / "data"
    database_path: Path = BASE_DIR / "data" / "shares.db"
    kv_rest_api_url: Optional[str] = None
    kv_rest_api_token: Optional[str] = None
    cleanup_interval_seconds: int = 3600
    rate_limit_enabled: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        data_dir = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
        return cls(
            debug=_env_bool("DEBUG", "false"),
            production_domain=os.getenv("PRODUCTION_DOMAIN", "codedrop.example.com"),
            allowed_hosts=_env_list("ALLOWED_HOSTS"),
            storage_backend=os.getenv("STORAGE_BACKEND", "json").lower(),
            data_dir=data_dir,
            database_path=Path(os.getenv("DATABASE_PATH", str(data_dir / "shares.db"))),
            kv_rest_api_url=os.getenv("KV_REST_API_URL"),
            kv_rest_api_token=os.getenv("KV_REST_API_TOKEN"),
            cleanup_interval_seconds=int(os.getenv("CLEANUP_INTERVAL_SECONDS", "3600")),
            rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", "true"),
        )

    @property
    def cors_origins(self) -> List[str]:
        origins = [
            f"https://{self.production_domain}",
            f"https://www.{self.production_domain}",
        ]
        if self.debug:
            origins += ["http://localhost:8000", "http://127.0.0.1:8000"]
        return origins

    @property
    def trusted_hosts(self) -> List[str]:
        if self.allowed_hosts:
            return self.allowed_hosts
        hosts = [self.production_domain, f"*.{self.production_domain}"]
        if self.debug:
            hosts += ["localhost", "127.0.0.1"]
        return hosts

"""Runtime configuration, read from the environment (and a .env file if present)."""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv


def _origins(raw):
    origins = [o.strip() for o in (raw or "").split(",") if o.strip()]
    return origins or ["*"]


def _optional_int(raw):
    if raw is None or raw.strip() == "":
        return None
    return int(raw)


@dataclass
class Settings:
    """
    Everything the server needs to build its document store and session.
    Every field is overridable at construction for testing.
    """
    env: str = "production"
    port: int = 10000
    mongo_uri: Optional[str] = None
    database_name: str = "sm2_drill"
    collection_name: str = "entries"
    frontend_origins: List[str] = field(default_factory=lambda: ["*"])
    random_seed: Optional[int] = None
    log_level: str = "INFO"

    @property
    def debug(self):
        return self.env != "production"


def load_settings():
    """Build Settings from environment variables after loading .env."""
    load_dotenv()
    return Settings(
        env=os.getenv("ENV", "production"),
        port=int(os.getenv("PORT", 10000)),
        mongo_uri=os.getenv("MONGO_URI") or None,
        database_name=os.getenv("DATABASE_NAME", "sm2_drill"),
        collection_name=os.getenv("COLLECTION_NAME", "entries"),
        frontend_origins=_origins(os.getenv("FRONTEND_ORIGIN")),
        random_seed=_optional_int(os.getenv("RANDOM_SEED")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

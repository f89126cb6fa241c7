"""
Run settings, read from the environment (and .env via env.load_env).

CLI flags override these; see app.py.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

BACKENDS = ("sqlite", "civicrm")

DEFAULT_RESOLVERS = "external_identifier,email_mover,phone_mover,im_mover"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_resolver_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated resolver list, dropping blanks."""
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


@dataclass
class Settings:
    backend: str = "sqlite"
    db_path: Path = Path("data/crm.db")
    civicrm_url: Optional[str] = None
    civicrm_api_key: Optional[str] = None
    civicrm_site_key: Optional[str] = None
    resolvers: List[str] = field(default_factory=lambda: parse_resolver_list(DEFAULT_RESOLVERS))
    force_merge: bool = False
    merge_log: Optional[Path] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        merge_log = os.getenv("XDEDUPE_MERGE_LOG")
        return cls(
            backend=os.getenv("XDEDUPE_BACKEND", "sqlite").strip().lower(),
            db_path=Path(os.getenv("XDEDUPE_DB_PATH", "data/crm.db")),
            civicrm_url=os.getenv("CIVICRM_URL"),
            civicrm_api_key=os.getenv("CIVICRM_API_KEY"),
            civicrm_site_key=os.getenv("CIVICRM_SITE_KEY"),
            resolvers=parse_resolver_list(os.getenv("XDEDUPE_RESOLVERS", DEFAULT_RESOLVERS)),
            force_merge=_env_flag("XDEDUPE_FORCE_MERGE"),
            merge_log=Path(merge_log) if merge_log else None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def validate(self) -> List[str]:
        """Returns a list of problems. Empty list means usable."""
        errors: List[str] = []
        if self.backend not in BACKENDS:
            errors.append(f"Unknown backend '{self.backend}' (expected one of: {', '.join(BACKENDS)})")
        if self.backend == "civicrm":
            if not self.civicrm_url:
                errors.append("CIVICRM_URL not set. Set env var or pass --civicrm-url.")
            if not self.civicrm_api_key:
                errors.append("CIVICRM_API_KEY not set.")
            if not self.civicrm_site_key:
                errors.append("CIVICRM_SITE_KEY not set.")
        return errors

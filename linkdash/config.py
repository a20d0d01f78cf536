from __future__ import annotations

import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "").strip()
    return int(value) if value else default


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name, "").strip()
    return float(value) if value else None


@dataclass
class Settings:
    data_file: Path = Path("data.json")
    log_dir: Path = Path("logs")
    static_dir: Path = Path("public")
    admin_password: str = "admin"
    jwt_secret: str = field(default_factory=lambda: secrets.token_hex(32))
    token_ttl_minutes: int = 720
    log_utc_offset_hours: int = 8
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    github_token: Optional[str] = None
    github_repo: Optional[str] = None
    github_branch: str = "main"
    github_path: str = "data.json"
    github_timeout: Optional[float] = None

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            data_file=Path(os.getenv("DATA_FILE", "data.json")),
            log_dir=Path(os.getenv("LOG_DIR", "logs")),
            static_dir=Path(os.getenv("STATIC_DIR", "public")),
            admin_password=os.getenv("ADMIN_PASSWORD", "admin"),
            token_ttl_minutes=_env_int("TOKEN_TTL_MINUTES", 720),
            log_utc_offset_hours=_env_int("LOG_UTC_OFFSET_HOURS", 8),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            github_token=os.getenv("GITHUB_TOKEN") or None,
            github_repo=os.getenv("GITHUB_REPO") or None,
            github_branch=os.getenv("GITHUB_BRANCH", "main"),
            github_path=os.getenv("GITHUB_PATH", "data.json"),
            github_timeout=_env_float("GITHUB_TIMEOUT"),
        )
        # unset secret: tokens stop verifying after a restart
        if os.getenv("JWT_SECRET"):
            settings.jwt_secret = os.environ["JWT_SECRET"]
        return settings

    @property
    def sync_configured(self) -> bool:
        return bool(self.github_token and self.github_repo)

# mediarepo/common/settings.py
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mediarepo.common.strings.splitters import csv_to_list
from mediarepo.common.timestamps import is_timestamp


def _to_bool(v: str | bool | int | None, default: bool = False) -> bool:
    if isinstance(v, bool):
        return v
    if v is None:
        return default
    s = str(v).strip().lower()
    return s in {"1", "true", "yes", "y", "on"}


class APIConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    prefix: str = "/api"

    cors_allow_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])
    cors_allow_methods: List[str] = Field(default_factory=lambda: ["GET", "HEAD", "OPTIONS"])
    cors_allow_headers: List[str] = Field(default_factory=lambda: ["*"])
    cors_allow_credentials: bool = False

    @field_validator("cors_allow_origins", "cors_allow_methods", "cors_allow_headers", mode="before")
    @classmethod
    def _split_csv(cls, v):
        return csv_to_list(v)


class RepoConfig(BaseModel):
    """Filesystem-backed file repository: zone layout, URLs and rendering hooks."""

    name: str = "local"
    root: Path = Path("/var/lib/mediarepo")

    public_dir: str = "public"
    thumb_dir: str = "thumb"
    transcoded_dir: str = "transcoded"
    temp_dir: str = "temp"

    url_base: str = "/images"
    thumb_url: Optional[str] = None
    transcoded_url: Optional[str] = None

    hash_levels: int = Field(2, ge=0, le=4)
    thumb_script_url: Optional[str] = None
    transform_via_404: bool = False
    read_only_reason: Optional[str] = None
    # Names longer than this are stored as "thumbnail.<ext>" in derivative names
    abbrv_threshold: int = Field(255, ge=1)

    @field_validator("transform_via_404", mode="before")
    @classmethod
    def _boolify(cls, v):
        return _to_bool(v)

    @field_validator("read_only_reason", "thumb_script_url", "thumb_url", "transcoded_url", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @computed_field  # type: ignore[misc]
    @property
    def effective_thumb_url(self) -> str:
        return (self.thumb_url or f"{self.url_base.rstrip('/')}/thumb").rstrip("/")

    @computed_field  # type: ignore[misc]
    @property
    def effective_transcoded_url(self) -> str:
        return (self.transcoded_url or f"{self.url_base.rstrip('/')}/transcoded").rstrip("/")


class TransformConfig(BaseModel):
    """Per-engine transform policy. Passed explicitly to TransformEngine."""

    # Cached derivatives stamped before this are re-rendered
    thumbnail_epoch: str = "20030516000000"
    ignore_image_errors: bool = False
    trusted_media_formats: List[str] = Field(
        default_factory=lambda: ["BITMAP", "AUDIO", "VIDEO", "image/svg+xml", "application/pdf"]
    )
    icon_dir: Optional[Path] = None
    icon_url: str = "/static/icons"
    temp_dir: Optional[Path] = None

    @field_validator("ignore_image_errors", mode="before")
    @classmethod
    def _boolify(cls, v):
        return _to_bool(v)

    @field_validator("trusted_media_formats", mode="before")
    @classmethod
    def _split_csv(cls, v):
        return csv_to_list(v)

    @field_validator("thumbnail_epoch")
    @classmethod
    def _check_epoch(cls, v: str) -> str:
        v = str(v).strip()
        if not is_timestamp(v):
            raise ValueError("thumbnail_epoch must be a 14-digit YYYYMMDDHHMMSS timestamp")
        return v


class EdgeCacheConfig(BaseModel):
    enabled: bool = False
    servers: List[str] = Field(default_factory=list)
    timeout_sec: float = Field(2.0, gt=0)

    @field_validator("enabled", mode="before")
    @classmethod
    def _boolify(cls, v):
        return _to_bool(v)

    @field_validator("servers", mode="before")
    @classmethod
    def _split_csv(cls, v):
        return csv_to_list(v)


class Settings(BaseSettings):
    # -------- App / Env --------
    app_name: str = "mediarepo"
    app_env: str = "development"  # development|test|staging|production
    log_level: str = "INFO"
    server_url: str = "http://localhost:8000"

    # -------- Sub-configs --------
    api: APIConfig = APIConfig()
    repo: RepoConfig = RepoConfig()
    transform: TransformConfig = TransformConfig()
    edge_cache: EdgeCacheConfig = EdgeCacheConfig()

    # -------- Bulk rendering --------
    max_thumb_workers: int = Field(8, ge=1, le=64, description="Upper bound for bulk render workers")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Global settings accessor (cached). Use this at the edges (API wiring, CLI);
    domain and service objects take their sub-config as a constructor argument:
        from mediarepo.common.settings import get_settings
        cfg = get_settings()
    """
    s = Settings()  # pydantic_settings will read from .env automatically
    if s.app_env in ("development", "test"):
        s.repo.root.mkdir(parents=True, exist_ok=True)
    return s

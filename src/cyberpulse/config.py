"""Configuration models and helpers for the CyberPulse pipeline."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List, Mapping

from pydantic import BaseModel, Field, ValidationError

__all__ = [
    "AIConfig",
    "DEFAULT_CONFIG_PATH",
    "EmbeddingConfig",
    "NotificationConfig",
    "PipelineConfig",
    "SchedulerConfig",
    "SmtpConfig",
    "SourceConfig",
    "StorageConfig",
]

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "data" / "pipeline.json"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class SourceConfig(BaseModel):
    """Extraction rules for the single news source."""

    base_url: str = Field(default="https://thehackernews.com", description="Index page of the source")
    max_articles: int = Field(default=20, ge=1, description="Maximum detail pages fetched per scrape")
    request_delay_seconds: float = Field(
        default=1.0, ge=0.0, description="Pause between detail page requests"
    )
    request_timeout_seconds: float = Field(default=30.0, gt=0.0)
    content_max_chars: int = Field(default=10_000, ge=1, description="Content is truncated to this length")
    link_selectors: List[str] = Field(
        default_factory=lambda: ["article a", ".story-link", ".post-link", ".home-title a"],
        description="Prioritized selectors for article links on the index page",
    )
    fallback_link_selector: str = Field(
        default='a[href*="/202"]',
        description="Pattern-based selector used when the primary selectors find nothing",
    )
    title_selectors: List[str] = Field(
        default_factory=lambda: ["h1.post-title", "h1.entry-title", "h1.title", "article h1"]
    )
    author_selectors: List[str] = Field(
        default_factory=lambda: [".author-name", ".post-author", ".author", '[rel="author"]']
    )
    date_selectors: List[str] = Field(
        default_factory=lambda: ["time[datetime]", ".post-date", ".entry-date", ".published"]
    )
    content_selectors: List[str] = Field(
        default_factory=lambda: [
            ".articlebody",
            ".post-content",
            ".entry-content",
            "article .content",
            ".article-content",
        ]
    )
    tag_selector: str = Field(default="span.p-tags")


class AIConfig(BaseModel):
    """Settings for the AI completion collaborator (hosted OpenAI or a local server)."""

    api_key: str | None = Field(default=None, description="OpenAI API key")
    model: str = Field(default="gpt-4o-mini", description="Hosted model used for enrichment and rubric")
    use_local_model: bool = Field(default=False, description="Talk to a local OpenAI-compatible server")
    local_base_url: str | None = Field(default=None, description="Base URL of the local server")
    local_model_name: str = Field(default="local-model")
    enrichment_delay_seconds: float = Field(default=1.0, ge=0.0)
    enrichment_max_tokens: int = Field(default=1024, ge=1)
    credibility_max_tokens: int = Field(default=600, ge=1)

    @property
    def is_local(self) -> bool:
        return self.use_local_model or bool(self.local_base_url)

    @property
    def is_configured(self) -> bool:
        """Return ``True`` when an AI backend can be reached with these settings."""

        return self.is_local or bool(self.api_key)

    @property
    def resolved_base_url(self) -> str | None:
        if not self.is_local:
            return None
        return self.local_base_url or "http://localhost:1234/v1"

    @property
    def resolved_model(self) -> str:
        return self.local_model_name if self.is_local else self.model


class EmbeddingConfig(BaseModel):
    enabled: bool = Field(default=True, description="Compute embeddings during enrichment")
    model_name: str = Field(default="sentence-transformers/all-MiniLM-L6-v2")


class StorageConfig(BaseModel):
    """Where articles and subscribers are persisted.

    A configured ``mongodb_uri`` selects the MongoDB store; otherwise documents
    live as JSON files under ``blob_root``.
    """

    mongodb_uri: str | None = Field(default=None)
    mongodb_database: str = Field(default="cyberpulse")
    blob_root: str | None = Field(default=None, description="Overrides the default blob root")


class SmtpConfig(BaseModel):
    host: str = Field(default="smtp.gmail.com")
    port: int = Field(default=587)
    secure: bool = Field(default=False, description="Use implicit TLS (port 465) instead of STARTTLS")
    user: str | None = Field(default=None)
    password: str | None = Field(default=None)
    from_name: str = Field(default="CyberPulse")
    timeout_seconds: float = Field(default=30.0, gt=0.0)

    @property
    def has_credentials(self) -> bool:
        return bool(self.user and self.password)


class NotificationConfig(BaseModel):
    min_credibility: int | None = Field(
        default=None,
        ge=0,
        le=100,
        description="System default credibility threshold for notifications; subscribers may override",
    )
    max_workers: int = Field(default=4, ge=1, description="Concurrent mail dispatches")


class SchedulerConfig(BaseModel):
    cron: str = Field(default="*/30 * * * *", description="Five-field cron expression")
    run_on_startup: bool = Field(default=False)
    category_filter: str | None = Field(default=None, description="Optional keyword applied after scraping")


class PipelineConfig(BaseModel):
    """Complete configuration of the ingestion pipeline."""

    source: SourceConfig = Field(default_factory=SourceConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    embeddings: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    smtp: SmtpConfig = Field(default_factory=SmtpConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    min_credibility_threshold: int = Field(
        default=70, ge=0, le=100, description="Threshold used by high-confidence queries"
    )

    @classmethod
    def from_file(cls, path: Path | str | None = None) -> "PipelineConfig":
        """Load configuration data from a JSON file."""

        config_path = Path(path) if path else DEFAULT_CONFIG_PATH
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise FileNotFoundError(f"Configuration file not found: {config_path}") from exc
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in configuration file: {config_path}") from exc

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Configuration file is invalid: {config_path}\n{exc}") from exc

    def dump(self, path: Path | str | None = None) -> None:
        """Persist the configuration back to disk as JSON."""

        config_path = Path(path) if path else DEFAULT_CONFIG_PATH
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(self.model_dump_json(indent=2), encoding="utf-8")

    def with_env(self, environ: Mapping[str, str] | None = None) -> "PipelineConfig":
        """Return a copy with any environment overrides applied."""

        env = os.environ if environ is None else environ
        data = self.model_dump()

        def _set(section: str | None, key: str, value: object) -> None:
            if section is None:
                data[key] = value
            else:
                data[section][key] = value

        def _text(name: str) -> str | None:
            value = env.get(name)
            if value is None:
                return None
            value = value.strip()
            return value or None

        string_overrides = [
            ("CATEGORY_FILTER", "scheduler", "category_filter"),
            ("CRON_SCHEDULE", "scheduler", "cron"),
            ("OPENAI_API_KEY", "ai", "api_key"),
            ("OPENAI_MODEL", "ai", "model"),
            ("LM_STUDIO_BASE_URL", "ai", "local_base_url"),
            ("LOCAL_MODEL_NAME", "ai", "local_model_name"),
            ("EMBEDDING_MODEL", "embeddings", "model_name"),
            ("MONGODB_URI", "storage", "mongodb_uri"),
            ("MONGODB_DATABASE", "storage", "mongodb_database"),
            ("BLOB_ROOT", "storage", "blob_root"),
            ("SMTP_HOST", "smtp", "host"),
            ("SMTP_USER", "smtp", "user"),
            ("SMTP_PASSWORD", "smtp", "password"),
            ("SMTP_FROM_NAME", "smtp", "from_name"),
        ]
        for name, section, key in string_overrides:
            value = _text(name)
            if value is not None:
                _set(section, key, value)

        bool_overrides = [
            ("RUN_ON_STARTUP", "scheduler", "run_on_startup"),
            ("USE_LOCAL_MODEL", "ai", "use_local_model"),
            ("EMBEDDINGS_ENABLED", "embeddings", "enabled"),
            ("SMTP_SECURE", "smtp", "secure"),
        ]
        for name, section, key in bool_overrides:
            value = _text(name)
            if value is not None:
                _set(section, key, value.lower() in _TRUE_VALUES)

        int_overrides = [
            ("SMTP_PORT", "smtp", "port"),
            ("MIN_CREDIBILITY_THRESHOLD", None, "min_credibility_threshold"),
            ("NOTIFY_MIN_CREDIBILITY", "notifications", "min_credibility"),
        ]
        for name, section, key in int_overrides:
            value = _text(name)
            if value is None:
                continue
            try:
                _set(section, key, int(value))
            except ValueError as exc:
                raise ValueError(f"Environment variable {name} must be an integer, got {value!r}") from exc

        try:
            return type(self).model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Environment configuration is invalid:\n{exc}") from exc

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PipelineConfig":
        """Build a configuration from defaults plus environment overrides."""

        return cls().with_env(environ)

    @classmethod
    def load(cls, path: Path | str | None = None, environ: Mapping[str, str] | None = None) -> "PipelineConfig":
        """Load ``path`` (or the default file when present) and apply environment overrides."""

        config_path = Path(path) if path else DEFAULT_CONFIG_PATH
        if path is None and not config_path.exists():
            base = cls()
        else:
            base = cls.from_file(config_path)
        return base.with_env(environ)

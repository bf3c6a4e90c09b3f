"""Configuration loaded from environment (.env) and defaults."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Locate the project root .env file, works regardless of CWD
_THIS_DIR = Path(__file__).resolve().parent          # productkit/
_PROJECT_ROOT = _THIS_DIR.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM provider: anthropic | openai
    pk_llm_provider: str = "anthropic"

    # Anthropic
    anthropic_api_key: str | None = None
    pk_anthropic_model: str = "claude-sonnet-4-5-20250929"

    # OpenAI
    openai_api_key: str | None = None
    pk_openai_model: str = "gpt-4o"

    # fal.ai (image, 3D, video and infographic generation)
    fal_key: str | None = None
    pk_fal_queue_url: str = "https://queue.fal.run"
    pk_fal_image_endpoint: str = "fal-ai/bytedance/seedream/v4/edit"
    pk_fal_understand_endpoint: str = "fal-ai/bagel/understand"
    pk_fal_model_endpoint: str = "fal-ai/omnipart"
    pk_fal_video_endpoint: str = "fal-ai/veo2/image-to-video"
    pk_video_prompt: str = "Cinematic product showcase"
    pk_fal_poll_interval: float = 1.0
    pk_fal_max_polls: int = 300

    # Timeout for outbound HTTP calls (seconds)
    pk_http_timeout: float = 60.0

    # S3-compatible object storage (DigitalOcean Spaces)
    do_spaces_key: str | None = None
    do_spaces_secret: str | None = None
    do_spaces_endpoint: str | None = None
    do_spaces_bucket: str | None = None
    do_spaces_region: str = "us-east-1"

    # Base URL under which the local asset store is served
    pk_public_asset_base_url: str = "http://localhost:8000/assets"

    # Shopify Admin API
    shopify_api_version: str = "2025-01"

    # Data directory for the file-based repositories and local assets
    pk_data_dir: str = "./data"

    # Postgres URL; when set, products and users live in Postgres
    pk_database_url: str | None = None

    # Pipeline behaviour
    pk_default_image_count: int = 5
    pk_serialize_product_runs: bool = True
    # Finished jobs older than this are pruned; None keeps them for the process lifetime
    pk_job_retention_seconds: int | None = None

    # Status stream
    pk_status_poll_interval: float = 1.0
    pk_status_grace_period: float = 0.5

    # CORS origins (comma-separated). Defaults to localhost dev.
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    cors_origin_regex: str | None = None

    # Server port
    port: int = 8000

    @property
    def data_dir(self) -> Path:
        """Get data directory as Path.

        Relative paths are resolved against the project root (not CWD).
        """
        p = Path(self.pk_data_dir)
        if not p.is_absolute():
            return (_PROJECT_ROOT / p).resolve()
        return p.resolve()

    @property
    def products_dir(self) -> Path:
        return self.data_dir / "products"

    @property
    def users_dir(self) -> Path:
        return self.data_dir / "users"

    @property
    def assets_dir(self) -> Path:
        return self.data_dir / "assets"

    @property
    def storage_configured(self) -> bool:
        return bool(
            self.do_spaces_key
            and self.do_spaces_secret
            and self.do_spaces_endpoint
            and self.do_spaces_bucket
        )

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def ensure_dirs(self) -> None:
        """Ensure all data directories exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.products_dir.mkdir(parents=True, exist_ok=True)
        self.users_dir.mkdir(parents=True, exist_ok=True)
        self.assets_dir.mkdir(parents=True, exist_ok=True)


def get_settings() -> Settings:
    settings = Settings()
    settings.ensure_dirs()
    return settings

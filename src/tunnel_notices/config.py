"""Runtime configuration for tunnel notices."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="TUNNEL_NOTICES_", env_file=".env", extra="ignore")

    app_name: str = "tunnel-notices"
    log_level: str = "INFO"
    notice_output: str = Field(
        default="stderr",
        description="Where emitted notices go: stderr, stdout or a file path.",
    )
    forward_logs: bool = Field(
        default=False,
        description="Re-emit package log records as Info/Alert/Error notices.",
    )
    read_chunk_size: int = Field(default=4096, gt=0)


settings = Settings()

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime settings for the service map backend and CLI.

    Values are read from SERVICE_MAP_* environment variables or a .env file.
    """
    # --- Logging ---
    log_level: str = Field("INFO", description="Level for service_map loggers.")

    # --- Graph manager ---
    max_history: int = Field(100, description="Undo snapshots kept per session.")
    default_node_x: float = Field(300, description="X position of interactively added nodes.")
    default_node_y: float = Field(300, description="Y position of interactively added nodes.")
    graph_dir: str = Field("~/service-maps", description="Default directory for saved graphs.")

    # --- API server ---
    api_host: str = Field("127.0.0.1", description="Bind address for `service-map serve`.")
    api_port: int = Field(8765, description="Port for `service-map serve`.")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"],
        description="Origins allowed to call the API from a browser.",
    )

    model_config = SettingsConfigDict(
        env_prefix="SERVICE_MAP_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


settings = Settings()

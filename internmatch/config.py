from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    gateway_url: str = "http://localhost:3000/api/assistant/ai-mode"
    gateway_timeout: float = 60.0
    storage_dir: Path = Path("sessions")
    storage_key: str = "lynkskill_ai_sessions"
    host: str = "0.0.0.0"
    port: int = 8100
    log_level: str = "info"
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3000",
    ]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()

"""Environment settings.

Secrets and deployment paths come from the process environment or a
``.env`` file, never from project documents.
"""

from typing import Optional

from pydantic_settings import BaseSettings


class StudioSettings(BaseSettings):
    gemini_api_key: str = ""

    pictonet_db_path: Optional[str] = None
    pictonet_base_dir: Optional[str] = None
    pictonet_log_level: str = "INFO"

    # Model routing
    text_model: str = "gemini-3-pro-preview"
    structuring_model: str = "gemini-3-pro-preview"
    http_timeout_ms: int = 300_000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


def get_settings() -> StudioSettings:
    return StudioSettings()

from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Poem Sync API"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/poems"
    jwt_secret: str
    jwt_algorithm: str = "HS256"

    # Шифрование: текущий мастер-секрет и история предыдущих (от старых к новым)
    encryption_key: Optional[str] = None
    encryption_previous_keys: str = ""
    encryption_salt: str = "poem-sync-kdf-salt"
    kdf_iterations: int = 100_000
    key_rotation_interval_days: int = 30

    max_title_length: int = 200
    max_content_length: int = 50_000
    max_tag_length: int = 30

    cors_origins: List[str] = ["*"]

    model_config = {"env_file": ".env", "extra": "ignore"}

    def previous_encryption_keys(self) -> List[str]:
        """Список предыдущих мастер-секретов"""
        return [key.strip() for key in self.encryption_previous_keys.split(",") if key.strip()]


settings = Settings()

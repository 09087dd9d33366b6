from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Store
    db_path: str = "./data/policy_to_code.sqlite"

    # App
    environment: str = "development"
    log_level: str = "INFO"
    json_logs: bool = False

    # Server
    host: str = "127.0.0.1"
    port: int = 3000

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def database_url(self) -> str:
        return f"sqlite+aiosqlite:///{self.db_path}"

    @model_validator(mode="after")
    def _validate_production(self):
        if self.environment == "production":
            if not self.db_path or self.db_path == ":memory:":
                raise ValueError(
                    "Production requires a file-backed DB_PATH"
                )
        return self


settings = Settings()

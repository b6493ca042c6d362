from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    DB_NAME: str = "formbuilder"
    FORMS_COLLECTION: str = "forms"
    SUBMISSIONS_COLLECTION: str = "formsubmissions"
    PORT: int = 3001
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "*"  # comma separated

    # Used by the builder client, not by the API server
    DATA_SOURCE: Literal["api", "fixtures"] = "api"
    API_BASE_URL: str = "http://localhost:3001"

    class Config:
        env_file = ".env"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()

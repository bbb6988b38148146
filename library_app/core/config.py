from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Application settings
    ENVIRONMENT: str = "development"

    # Database settings
    POSTGRES_USER: str = "library"
    POSTGRES_PASSWORD: str = "Passw0rd"
    POSTGRES_DB: str = "ic_library"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    DATABASE_URL_OVERRIDE: Optional[str] = None  # e.g. sqlite+aiosqlite:///./library.db
    SQL_ECHO: bool = False  # Set to True for SQL query debugging
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    # Rental rules
    MAX_ACTIVE_RENTALS: int = 3
    DEFAULT_RENTAL_DAYS: int = 7
    REQUEST_RENTAL_DAYS: int = 14  # Window applied when an issue request is approved
    MAX_RENTAL_DAYS: int = 30
    RENTAL_HISTORY_LIMIT: int = 100

    # Email settings
    RESEND_API_KEY: Optional[str] = None
    FROM_EMAIL: str = "library@iclibrary.com"
    FRONTEND_URL: str = "http://localhost:3000"

    # Default manager settings
    DEFAULT_MANAGER_NAME: str = "Library Manager"
    DEFAULT_MANAGER_EMAIL: str = "manager@iclibrary.com"
    DEFAULT_MANAGER_PHONE: str = "9000000000"

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()

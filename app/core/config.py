from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Temple Halls API"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    ADMIN_SECRET_KEY: str = "change-this-admin-secret"

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "12345"
    POSTGRES_DB: str = "temple_halls_db"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: str = ""

    # "today" is the calendar date in this zone
    TIMEZONE: str = "Asia/Kolkata"

    # Holds not confirmed within this many minutes are implicitly released
    HOLD_TTL_MINUTES: int = 15
    HOLD_SWEEP_INTERVAL_SECONDS: int = 60

    # Booking surfaces: look-ahead in months and what a date click does
    HALL_DETAIL_HORIZON_MONTHS: int = 36
    HALL_OVERVIEW_HORIZON_MONTHS: int = 2
    HALL_DETAIL_FLOW: str = "hold"     # "hold" | "book"
    HALL_OVERVIEW_FLOW: str = "hold"

    # "sql" talks to DATABASE_URL, "remote" to another instance of this API
    AVAILABILITY_BACKEND: str = "sql"
    AVAILABILITY_API_URL: str = "http://127.0.0.1:8000/api/v1"
    AVAILABILITY_API_TIMEOUT_SECONDS: float = 10.0

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    def assemble_db_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

settings = Settings()
settings.DATABASE_URL = settings.assemble_db_url()

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    tutor_db_url: str = "sqlite+aiosqlite:///data/tutor.db"

    # Logging
    tutor_log_level: str = "info"

    # CORS
    tutor_cors_origins: str = "http://localhost:5173"

    # Activity feed
    tutor_feed_page_size: int = 20
    tutor_student_fallback_name: str = "student"  # Linked student without a custom name

    model_config = {"env_prefix": "", "case_sensitive": False, "env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()

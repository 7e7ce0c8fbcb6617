from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # MongoDB Configuration
    mongo_url: str = "mongodb://localhost:27017"
    db_name: str = "fleet_ops"

    # Application Configuration
    frontend_url: str = "http://localhost:3000"
    environment: str = "development"

    # JWT Configuration
    jwt_secret_key: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 60 * 24 * 7  # 7 days

    # Import previews are held in memory until confirmed
    import_session_ttl_minutes: int = 30

    # Availability colour bands (percent)
    availability_warning_threshold: float = 85.0
    availability_critical_threshold: float = 70.0

    default_currency: str = "USD"

    class Config:
        env_file = ".env"
        case_sensitive = False

@lru_cache()
def get_settings():
    return Settings()

# studypet/core/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Study Pet"
    API_V1_STR: str = "/api/v1"

    MONGO_CONNECTION_URI: str = "mongodb://localhost:27017"
    MONGO_DATABASE_NAME: str = "studypet"

    LOG_LEVEL: str = "INFO"

    # Timer cadence, in seconds
    HUNGER_TICK_SECONDS: int = 60
    HEALTH_CHECK_SECONDS: int = 300
    NEEDS_REFRESH_SECONDS: int = 30

    # Care rules
    FEEDING_COOLDOWN_MINUTES: int = 30
    PLAY_COOLDOWN_MINUTES: int = 15
    CARE_HISTORY_SIZE: int = 10

    # Alerting and trend buffers
    ALERT_SUPPRESSION_MINUTES: int = 30
    ALERT_BUFFER_SIZE: int = 50
    TREND_BUFFER_SIZE: int = 288  # 24h at the 5-minute health check cadence

    # Auto-care defaults
    AUTO_FEED_THRESHOLD: int = 70
    AUTO_PLAY_THRESHOLD: int = 30

    model_config = SettingsConfigDict(env_file=".env", extra="ignore",
                                      case_sensitive=False)  # case_sensitive=False for env vars


settings = Settings()

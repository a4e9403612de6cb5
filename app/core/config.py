from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

# development-only signing key; refused when APP_ENV is production
DEFAULT_JWT_SECRET = "aVerySecretKeyThatIsAtLeast256BitsLongForHS256AlgorithmToWorkProperly"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"  # local | test | npe | production
    APP_NAME: str = "fincore-usermgmt"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: str = "http://localhost:3000"

    DATABASE_URL: str
    REDIS_URL: str = "redis://localhost:6379/0"

    JWT_SECRET: str = DEFAULT_JWT_SECRET
    JWT_EXPIRATION_SECONDS: int = 86400

    OTP_LENGTH: int = 6
    OTP_TTL_SECONDS: int = 300
    OTP_MAX_ATTEMPTS: int = 5
    OTP_DEV_MODE: bool = False
    OTP_SWEEP_INTERVAL_SECONDS: int = 300
    OTP_RATE_LIMIT_WINDOW_SECONDS: int = 300
    OTP_SEND_RATE_LIMIT: int = 5
    OTP_VERIFY_RATE_LIMIT: int = 20

    AUTH_UNKNOWN_PHONE_POLICY: str = "provision"  # provision | reject
    AUTH_DEFAULT_ROLE: str = "USER"

    API_KEYS: str = ""

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def api_keys_list(self) -> List[str]:
        return [k.strip() for k in self.API_KEYS.split(",") if k.strip()]

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.strip().lower() in {"prod", "production"}

settings = Settings()

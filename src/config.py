"""
Configuration management for the Vocabulary Book Bot
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Telegram Bot Configuration
    telegram_bot_token: str = Field(..., env="TELEGRAM_BOT_TOKEN")
    allowed_users: str = Field(default="", env="ALLOWED_USERS")
    admin_users: str = Field(default="", env="ADMIN_USERS")

    # OpenAI Configuration (optional, used to gloss imported words)
    openai_api_key: str | None = Field(default=None, env="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4", env="OPENAI_MODEL")
    openai_max_tokens: int = Field(default=1000, env="OPENAI_MAX_TOKENS")
    openai_temperature: float = Field(default=1.0, env="OPENAI_TEMPERATURE")
    max_openai_requests_per_day: int = Field(
        default=200, env="MAX_OPENAI_REQUESTS_PER_DAY"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///data/wordbook.db", env="DATABASE_URL"
    )

    # Dictionary / Translation Configuration
    dictionary_api_url: str = Field(
        default="https://api.dictionaryapi.dev/api/v2/entries/en",
        env="DICTIONARY_API_URL",
    )
    translation_api_url: str = Field(
        default="https://api.mymemory.translated.net/get", env="TRANSLATION_API_URL"
    )
    translation_langpair: str = Field(default="en|zh-CN", env="TRANSLATION_LANGPAIR")
    pronunciation_url: str = Field(
        default="https://dict.youdao.com/dictvoice?type=2&audio={word}",
        env="PRONUNCIATION_URL",
    )

    # Aliyun OCR Configuration
    alibaba_cloud_access_key_id: str = Field(default="", env="ALIBABA_CLOUD_ACCESS_KEY_ID")
    alibaba_cloud_access_key_secret: str = Field(
        default="", env="ALIBABA_CLOUD_ACCESS_KEY_SECRET"
    )
    aliyun_ocr_endpoint: str = Field(
        default="ocr-api.cn-hangzhou.aliyuncs.com", env="ALIYUN_OCR_ENDPOINT"
    )
    aliyun_ocr_version: str = Field(default="2021-07-07", env="ALIYUN_OCR_VERSION")

    # Application Configuration
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    debug: bool = Field(default=False, env="DEBUG")
    polling_interval: float = Field(default=1.0, env="POLLING_INTERVAL")
    api_timeout: int = Field(default=60, env="API_TIMEOUT")

    # Limits and timeouts
    max_words_per_import: int = Field(default=100, env="MAX_WORDS_PER_IMPORT")
    state_timeout_minutes: int = Field(default=10, env="STATE_TIMEOUT_MINUTES")
    lock_timeout_minutes: int = Field(default=5, env="LOCK_TIMEOUT_MINUTES")
    session_max_age_hours: int = Field(default=24, env="SESSION_MAX_AGE_HOURS")

    @property
    def allowed_users_list(self) -> list[int]:
        """Convert allowed_users string to list of integers"""
        return _parse_id_list(self.allowed_users)

    @property
    def admin_users_list(self) -> list[int]:
        """Convert admin_users string to list of integers"""
        return _parse_id_list(self.admin_users)

    @property
    def ocr_configured(self) -> bool:
        return bool(self.alibaba_cloud_access_key_id and self.alibaba_cloud_access_key_secret)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore"
    )


def _parse_id_list(raw: str) -> list[int]:
    # Comma-separated Telegram user IDs
    if not raw.strip():
        return []
    return [int(user_id.strip()) for user_id in raw.split(",") if user_id.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


def get_database_path() -> str:
    """Get the database file path from URL"""
    settings = get_settings()
    if settings.database_url.startswith("sqlite:///"):
        return settings.database_url.replace("sqlite:///", "")
    return "data/wordbook.db"

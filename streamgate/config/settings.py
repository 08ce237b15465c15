from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SG_",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    providers: str = Field(
        default="openai,groq,cerebras", description="Comma separated rotation order"
    )
    rotation_state_file: Path | None = None
    log_level: str = "INFO"

    # Provider credentials use the vendors' conventional variable names.
    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-3.5-turbo", validation_alias="OPENAI_MODEL")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", validation_alias="OPENAI_BASE_URL"
    )
    openai_temperature: float = 1.0
    openai_max_output_tokens: int = 4096
    openai_store: bool = False

    groq_api_key: str = Field(default="", validation_alias="GROQ_API_KEY")
    groq_model: str = Field(
        default="moonshotai/kimi-k2-instruct-0905", validation_alias="GROQ_MODEL"
    )
    groq_base_url: str = Field(
        default="https://api.groq.com/openai/v1", validation_alias="GROQ_BASE_URL"
    )
    groq_temperature: float = 0.6
    groq_max_tokens: int = 4096

    cerebras_api_key: str = Field(default="", validation_alias="CEREBRAS_API_KEY")
    cerebras_model: str = Field(default="llama-3.3-70b", validation_alias="CEREBRAS_MODEL")
    cerebras_base_url: str = Field(
        default="https://api.cerebras.ai/v1", validation_alias="CEREBRAS_BASE_URL"
    )
    cerebras_temperature: float = 0.6
    cerebras_max_tokens: int = 4096

    top_p: float = 1.0

    @property
    def provider_names(self) -> list[str]:
        return [item.strip().lower() for item in self.providers.split(",") if item.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


def clear_settings_cache() -> None:
    get_settings.cache_clear()

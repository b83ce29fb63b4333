# The module is to define the configuration settings for the toolstream service.
# Date: 2025-06-11
# Version: 0.2.0

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    The Settings class is used to define the configuration settings for the application.
    It inherits from BaseSettings, which allows it to load environment variables
    and provides type validation for the settings.

    Provider secrets are optional so the service can start with a partial tool
    set: a tool whose credentials are missing is skipped at discovery time.
    """
    LOG_LEVEL: str = "info"

    # LLM Provider Switch
    LLM_PROVIDER: str = "CHATGPT"

    # CHATGPT
    CHATGPT_API_KEY: Optional[str] = None
    CHATGPT_MODEL: str = "gpt-4o-mini"
    CHATGPT_BASE_URL: str = "https://api.openai.com/v1"

    # XAI
    XAI_API_KEY: Optional[str] = None
    XAI_MODEL: str = "grok-beta"
    XAI_BASE_URL: str = "https://api.x.ai/v1"

    # DEEPSEEK_CHAT
    DEEPSEEK_CHAT_API_KEY: Optional[str] = None
    DEEPSEEK_CHAT_MODEL: str = "deepseek-chat"
    DEEPSEEK_CHAT_BASE_URL: str = "https://api.deepseek.com/v1"

    # GROQ
    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "llama-3.1-70b-versatile"
    GROQ_BASE_URL: str = "https://api.groq.com/openai/v1"

    # Tool providers
    TAVILY_API_KEY: Optional[str] = None
    FIRECRAWL_API_KEY: Optional[str] = None
    FIRECRAWL_BASE_URL: str = "https://api.firecrawl.dev"
    OPENWEATHER_API_KEY: Optional[str] = None
    GOOGLE_MAPS_API_KEY: Optional[str] = None
    AZURE_TRANSLATOR_KEY: Optional[str] = None
    AZURE_TRANSLATOR_LOCATION: Optional[str] = None

    # Code sandbox
    E2B_API_KEY: Optional[str] = None
    SANDBOX_TEMPLATE_ID: Optional[str] = None
    SANDBOX_RUN_TIMEOUT: float = 60.0

    # Artifact storage
    BLOB_READ_WRITE_TOKEN: Optional[str] = None
    BLOB_API_URL: str = "https://blob.vercel-storage.com"
    ARTIFACT_NAMESPACE: str = "toolstream"
    ARTIFACT_UPLOAD_TIMEOUT: float = 2.0

    # Turn loop budgets
    MAX_STEPS: int = 10
    TIME_BUDGET_SECONDS: float = 120.0

    # REDIS (rate limiting)
    REDIS_URL: str = "redis://localhost:6379/0"
    RATE_LIMIT_ENABLED: bool = False
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 86400

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'

    def llm_provider_config(self, provider: Optional[str] = None) -> Dict[str, Optional[str]]:
        """Returns the api key, model and base url of the given (or active) LLM provider."""
        name = (provider or self.LLM_PROVIDER).upper()
        if not hasattr(self, f"{name}_MODEL"):
            raise ValueError(f"Unsupported LLM provider: {name}")
        return {
            "api_key": getattr(self, f"{name}_API_KEY"),
            "model": getattr(self, f"{name}_MODEL"),
            "base_url": getattr(self, f"{name}_BASE_URL"),
        }

    def masked_dump(self) -> Dict[str, str]:
        """Settings as strings with every secret replaced by a mask, for startup logging."""
        masked = {}
        for key, value in self.model_dump().items():
            if value and any(marker in key for marker in ("KEY", "TOKEN")):
                masked[key] = "********"
            else:
                masked[key] = str(value)
        return masked


@dataclass(frozen=True)
class ProviderCredentials:
    """
    Credentials and endpoints for every external collaborator.
    Built once from the settings and injected into each tool executor, so no
    executor reads global configuration on its own.
    """
    tavily_api_key: Optional[str] = None
    firecrawl_api_key: Optional[str] = None
    firecrawl_base_url: str = "https://api.firecrawl.dev"
    openweather_api_key: Optional[str] = None
    google_maps_api_key: Optional[str] = None
    azure_translator_key: Optional[str] = None
    azure_translator_location: Optional[str] = None
    e2b_api_key: Optional[str] = None
    sandbox_template_id: Optional[str] = None
    sandbox_run_timeout: float = 60.0
    blob_token: Optional[str] = None
    blob_api_url: str = "https://blob.vercel-storage.com"
    artifact_namespace: str = "toolstream"
    artifact_upload_timeout: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderCredentials":
        return cls(
            tavily_api_key=settings.TAVILY_API_KEY,
            firecrawl_api_key=settings.FIRECRAWL_API_KEY,
            firecrawl_base_url=settings.FIRECRAWL_BASE_URL,
            openweather_api_key=settings.OPENWEATHER_API_KEY,
            google_maps_api_key=settings.GOOGLE_MAPS_API_KEY,
            azure_translator_key=settings.AZURE_TRANSLATOR_KEY,
            azure_translator_location=settings.AZURE_TRANSLATOR_LOCATION,
            e2b_api_key=settings.E2B_API_KEY,
            sandbox_template_id=settings.SANDBOX_TEMPLATE_ID,
            sandbox_run_timeout=settings.SANDBOX_RUN_TIMEOUT,
            blob_token=settings.BLOB_READ_WRITE_TOKEN,
            blob_api_url=settings.BLOB_API_URL,
            artifact_namespace=settings.ARTIFACT_NAMESPACE,
            artifact_upload_timeout=settings.ARTIFACT_UPLOAD_TIMEOUT,
        )


# lru_cache to cache the settings instance.
@lru_cache
def get_settings():
    return Settings()


@lru_cache
def get_credentials() -> ProviderCredentials:
    return ProviderCredentials.from_settings(get_settings())

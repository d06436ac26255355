"""Configuration management."""
import os
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv(override=False)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Ignore extra environment variables
    )

    # Deployment
    app_env: str = os.getenv("APP_ENV", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./vibe-trader.db")

    # Snapshot cache (unset = cache bypassed)
    redis_url: Optional[str] = os.getenv("REDIS_URL")
    token_info_ttl_seconds: int = int(os.getenv("TOKEN_INFO_TTL_SECONDS", "30"))
    token_search_ttl_seconds: int = int(os.getenv("TOKEN_SEARCH_TTL_SECONDS", "300"))

    # Web client
    frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # Identity provider tokens
    jwt_secret: str = os.getenv("JWT_SECRET", "dev-jwt-secret-change-in-production")
    jwt_issuer: str = os.getenv("JWT_ISSUER", "vibe-trader")
    jwt_audience: str = os.getenv("JWT_AUDIENCE", "vibe-trader")
    jwt_exp_minutes: int = int(os.getenv("JWT_EXP_MINUTES", "60"))

    # Daily interaction quotas
    user_daily_limit: int = int(os.getenv("USER_DAILY_LIMIT", "20"))
    anon_daily_limit: int = int(os.getenv("ANON_DAILY_LIMIT", "2"))

    # OpenAI
    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4-turbo-preview")
    llm_temperature: float = float(os.getenv("LLM_TEMPERATURE", "0.8"))
    llm_max_tokens: int = int(os.getenv("LLM_MAX_TOKENS", "1000"))
    llm_timeout_seconds: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

    # Conversation store bounds
    conversation_max_entries: int = int(os.getenv("CONVERSATION_MAX_ENTRIES", "1000"))
    conversation_idle_ttl_seconds: int = int(os.getenv("CONVERSATION_IDLE_TTL_SECONDS", "21600"))

    # Solana wallet (generated at startup when absent; funds do NOT survive restarts)
    solana_private_key: Optional[str] = os.getenv("SOLANA_PRIVATE_KEY")
    solana_rpc_url: str = os.getenv("SOLANA_RPC_URL", "https://api.mainnet-beta.solana.com")

    # Jupiter Ultra (swap venue)
    jupiter_api_key: Optional[str] = os.getenv("JUPITER_API_KEY")
    jupiter_api_url: str = os.getenv("JUPITER_API_URL", "https://api.jup.ag/ultra/v1")
    venue_timeout_seconds: float = float(os.getenv("VENUE_TIMEOUT_SECONDS", "30"))

    # Codex (market data)
    codex_api_key: Optional[str] = os.getenv("CODEX_API_KEY")
    codex_api_url: str = os.getenv("CODEX_API_URL", "https://graph.codex.io/graphql")

    # Trading
    buy_amount_sol: float = float(os.getenv("BUY_AMOUNT_SOL", "0.1"))
    dev_max_test_swap_sol: float = float(os.getenv("DEV_MAX_TEST_SWAP_SOL", "0.01"))

    # Live event feed
    ws_heartbeat_seconds: float = float(os.getenv("WS_HEARTBEAT_SECONDS", "30"))

    @property
    def is_production(self) -> bool:
        """Dev endpoints are never mounted in production."""
        return self.app_env.strip().lower() == "production"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings singleton. Used for test isolation."""
    global _settings
    _settings = None

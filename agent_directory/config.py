from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Agent Directory"
    version: str = "0.3.0"
    database_url: str = "sqlite:///./data/agent_directory.db"

    # Payment oracle (Basescan, Base mainnet)
    basescan_api_url: str = "https://api.basescan.org/api"
    basescan_api_key: str | None = None
    payment_network: str = "base"

    # Identity oracle (OneMolt / World ID)
    onemolt_base_url: str = "https://onemolt.ai/api/v1"

    # Upper bound for every outbound oracle request
    oracle_timeout_seconds: float = 10.0

    # Reputation
    reputation_half_life_days: float = 90.0
    recent_feedback_limit: int = 5

    default_page_limit: int = 50

    debug: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()

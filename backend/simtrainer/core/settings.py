from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Gemini (OpenAI-compatible endpoint), tried first
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    gemini_model: str = "gemini-2.0-flash"

    # Anthropic Claude
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"

    # Groq (OpenAI-compatible)
    groq_api_key: str = ""
    groq_base_url: str = "https://api.groq.com/openai/v1"
    groq_model: str = "llama-3.3-70b-versatile"

    # DeepSeek (OpenAI-compatible)
    deepseek_api_key: str = ""
    deepseek_base_url: str = "https://api.deepseek.com/v1"
    deepseek_model: str = "deepseek-chat"

    # Fallback chain, highest priority first
    llm_backend_order: list[str] = ["gemini", "anthropic", "groq", "deepseek"]
    llm_timeout_seconds: int = 12
    llm_mock_enabled: bool = False

    # Force rule-based analysis + template wording (for eval determinism)
    force_rule_based: bool = False

    # Seed for the shared policy RNG; None = OS entropy
    random_seed: int | None = None

    # Idle sessions are ended with reason "timeout"; 0 disables the watchdog
    idle_timeout_seconds: int = 900

    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()

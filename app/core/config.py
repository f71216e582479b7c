from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Provider API keys (empty = not configured)
    openrouter_api_key: str = ""
    gemini_api_key: str = ""
    openai_api_key: str = ""

    # OpenRouter (multi-model aggregator)
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_referer: str = "https://intellaone.app"
    openrouter_title: str = "IntellaOne Marketing Platform"
    openrouter_max_tokens: int = 800

    # Gemini (search-augmented research)
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_search_grounding: bool = True

    # OpenAI (generic generation + images)
    openai_base_url: str = "https://api.openai.com/v1"
    openai_default_model: str = "gpt-4o"
    openai_image_model: str = "dall-e-3"

    # Per-agent models
    maven_model: str = "gemini-2.0-flash"
    matrix_model: str = "anthropic/claude-3-haiku"
    max_model: str = "mistralai/mistral-7b-instruct"

    # Timeouts (seconds)
    research_timeout_seconds: float = 30.0  # hard deadline around the research call
    provider_timeout_seconds: float = 120.0  # transport timeout for every other provider call

    # Strict: malformed upstream output becomes INVALID_RESPONSE instead of being repaired
    strict_response_validation: bool = False

    # Auth boundary
    free_trial_enabled: bool = True
    jwt_secret_key: str = "change-this-to-a-random-string"
    jwt_algorithm: str = "HS256"

    # App
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_version: str = "1.0.0"

    # Ping OpenRouter once on startup and log the outcome
    provider_startup_check: bool = False

    # CORS
    allowed_origins: str = "*"  # comma-separated, e.g. "https://app.example.com,https://admin.example.com"

    # Rate limiting for the AI endpoints (slowapi syntax)
    rate_limit_enabled: bool = True
    ai_rate_limit: str = "60/minute"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable


settings = Settings()


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    errors: list[str] = []

    if settings.app_env == "production":
        if settings.jwt_secret_key in ("change-this-to-a-random-string", ""):
            errors.append("JWT_SECRET_KEY must be set to a secure random value")
        elif len(settings.jwt_secret_key) < 32:
            errors.append("JWT_SECRET_KEY must be at least 32 characters")

        if settings.allowed_origins == "*":
            errors.append("ALLOWED_ORIGINS must not be '*' in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")
        if settings.research_timeout_seconds <= 0:
            errors.append("RESEARCH_TIMEOUT_SECONDS must be positive")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    SUPABASE_URL: str
    SUPABASE_SERVICE_ROLE_KEY: str
    ANTHROPIC_API_KEY: str = ""  # Empty disables the LLM; summaries fall back
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # LLM Settings
    LLM_MODEL: str = "claude-sonnet-4-5"
    LLM_MODEL_VERSION: str = "v1.0"
    MAX_SUGGESTIONS: int = 3

    # Pipeline Settings
    PIPELINE_BATCH_LIMIT: int = 20
    PIPELINE_MAX_BATCH_LIMIT: int = 100
    PIPELINE_MAX_WORKERS: int = 4  # Keep within LLM rate limits

    # Outbound calls (Gmail, Slack, Calendar)
    EXTERNAL_CALL_TIMEOUT_SECONDS: float = 15.0

    # Scheduler Settings
    ENABLE_SCHEDULER: bool = True
    PIPELINE_INTERVAL_MINUTES: int = 5
    TASK_SCHEDULER_INTERVAL_MINUTES: int = 1

    # Cron API Key for external trigger
    CRON_API_KEY: str = "change-me-in-production"

    class Config:
        env_file = ".env"


settings = Settings()

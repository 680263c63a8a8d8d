from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./planner.db"

    # Application
    base_url: str = "http://localhost:8000"
    log_level: str = "INFO"

    # Authentication
    session_cookie_name: str = "planner_session"

    # CORS
    cors_origins: str = ""  # Comma-separated allowed origins (empty = allow all)

    # Realtime
    ws_queue_size: int = 256  # Pending messages per WebSocket before it is dropped
    sse_keepalive_seconds: float = 30.0

    # LLM (OpenRouter preferred, OpenAI direct as fallback)
    openrouter_api_key: str = ""
    openai_api_key: str = ""
    llm_model: str = "openai/gpt-oss-120b"
    denglish_model: str = "x-ai/grok-3-mini"

    # MCP stdio server: acts on behalf of the session with this token (empty = anonymous)
    mcp_session_token: str = ""

    # Admin management (promote/demote endpoint; empty = disabled)
    admin_management_key: str = ""

    # AI usage
    ai_usage_default_limit: int = 50  # Chat requests per user per day

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()

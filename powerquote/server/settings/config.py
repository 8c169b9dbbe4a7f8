from pydantic import BaseModel
from dotenv import load_dotenv
import os

load_dotenv()


def _split(value: str):
    return [v.strip() for v in value.split(",") if v.strip()]


class Settings(BaseModel):
    app_name: str = os.getenv("APP_NAME", "PowerQuote - BOM & quote approvals")
    environment: str = os.getenv("ENVIRONMENT", "dev")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./powerquote.db")
    debug: bool = os.getenv("DEBUG", "0") == "1"

    # Finance guardrail: quotes below this discounted margin need finance sign-off
    finance_margin_limit: float = float(os.getenv("FINANCE_MARGIN_LIMIT", "25"))
    default_currency: str = os.getenv("DEFAULT_CURRENCY", "USD")
    quote_id_prefix: str = os.getenv("QUOTE_ID_PREFIX", "QLT")

    cors_origins: list = _split(os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    json_logs: bool = os.getenv("JSON_LOGS", "0") == "1"
    log_dir: str = os.getenv("LOG_DIR", "logs")


settings = Settings()

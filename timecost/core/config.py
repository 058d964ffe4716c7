import os
from dotenv import load_dotenv


class Settings:
    def __init__(self) -> None:
        # Load variables from .env into environment
        load_dotenv()
        self.SECRET_KEY: str = os.getenv("SECRET_KEY", "changeme")
        self.MONGODB_URI: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
        self.MONGODB_DB_NAME: str = os.getenv("MONGODB_DB_NAME", "timecost")
        # Frontend base URL (used in CORS)
        self.FRONTEND_BASE_URL: str = os.getenv("FRONTEND_BASE_URL", "")
        # Optional comma-separated list of additional allowed origins for CORS
        self.ALLOWED_ORIGINS: list[str] = [
            o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()
        ]
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        # Budget defaults
        self.DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "PHP")
        self.BUDGET_WARNING_THRESHOLD: float = float(os.getenv("BUDGET_WARNING_THRESHOLD", "80"))
        self.BUDGET_CRITICAL_THRESHOLD: float = float(os.getenv("BUDGET_CRITICAL_THRESHOLD", "100"))
        # Label used when a timer is started without a task description
        self.DEFAULT_TASK_LABEL: str = os.getenv("DEFAULT_TASK_LABEL", "Started working")


settings = Settings()

"""Environment-driven configuration."""

import os
from pathlib import Path

from dotenv import load_dotenv

if Path(".env").exists():
    load_dotenv()


class Config:
    """Settings read from the environment (or a local .env file)."""

    # Client credentials for the token endpoint ("Basic ..." header value)
    CLIENT_AUTH = os.getenv("CASINO_OFFERS_CLIENT_AUTH", "")
    # Application key required by the guest account endpoint
    APP_KEY = os.getenv("CASINO_OFFERS_APP_KEY", "")
    BRAND = os.getenv("CASINO_OFFERS_BRAND", "R")

    REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "30"))
    MAX_CONCURRENT_REQUESTS = int(os.getenv("MAX_CONCURRENT_REQUESTS", "10"))

    # Default file names
    BOUNCE_BACK_CSV = "bounce-back.csv"
    OFFERS_FILE = "offers.json"
    BOUNCE_BACK_RESULTS = "comparisonResults"
    USER_RESULTS = "comparison-results"

    @classmethod
    def is_api_configured(cls) -> bool:
        return bool(cls.CLIENT_AUTH and cls.APP_KEY)

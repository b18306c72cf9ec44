# src/hostcert/config/const.py
from __future__ import annotations

# Built-in defaults; deployments override them via hostcert.yaml or the environment
APP_NAME: str = "hostcert"
PORT: int = 5000

AUTHORITY_API_BASE: str = "https://api.cloudflare.com/client/v4"
AUTHORITY_TIMEOUT: float = 15.0

# Status polling: fixed delay between failed fetches, no backoff growth
POLL_ATTEMPTS: int = 3
POLL_DELAY: float = 60.0

DB_PATH: str = "./data/sqlite/ssl_records.db"

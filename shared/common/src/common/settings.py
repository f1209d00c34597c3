import os
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

DOTENV_PATH = os.getenv("DOTENV_PATH", ".env")
if os.path.exists(DOTENV_PATH):
    load_dotenv(dotenv_path=DOTENV_PATH)
else:
    logger.debug(f"No .env file found at {DOTENV_PATH}, using defaults/environment variables")

# Backend accounting service
BACKEND_SCHEMA = os.getenv("BACKEND_SCHEMA", "http")
BACKEND_HOST = os.getenv("BACKEND_HOST", "localhost")
BACKEND_PORT = int(os.getenv("BACKEND_PORT", "3001"))
BACKEND_BASE_URL = os.getenv("BACKEND_BASE_URL", f"{BACKEND_SCHEMA}://{BACKEND_HOST}:{BACKEND_PORT}")
BACKEND_API_URL = f"{BACKEND_BASE_URL}/api"
BACKEND_HEALTH_URL = f"{BACKEND_BASE_URL}/health"

_WS_SCHEMA = "wss" if BACKEND_SCHEMA == "https" else "ws"
BACKEND_WS_URL = os.getenv("BACKEND_WS_URL", f"{_WS_SCHEMA}://{BACKEND_HOST}:{BACKEND_PORT}")

# Only the reachability probe is bounded; REST calls have no client timeout
HEALTH_CHECK_TIMEOUT = float(os.getenv("HEALTH_CHECK_TIMEOUT", "5.0"))
REALTIME_RECONNECT_INTERVAL = float(os.getenv("REALTIME_RECONNECT_INTERVAL", "5.0"))

# Persisted bearer token
TOKEN_STORE_PATH = Path(os.getenv("TOKEN_STORE_PATH", str(Path.home() / ".nexa_miner" / "auth.json"))).expanduser()
TOKEN_STORE_KEY = "miner_auth_token"

# Wallet rules enforced client side
MIN_WITHDRAWAL_AMOUNT = float(os.getenv("MIN_WITHDRAWAL_AMOUNT", "100"))
BALANCE_CURRENCY = "BMT"

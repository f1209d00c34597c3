import os

from dotenv import load_dotenv
from loguru import logger

from common import settings as common_settings  # noqa: F401  (loads shared backend settings first)


DOTENV_PATH = os.getenv("DOTENV_PATH", ".env")
if os.path.exists(DOTENV_PATH):
    load_dotenv(dotenv_path=DOTENV_PATH)
else:
    logger.debug(f"No .env file found at {DOTENV_PATH}, using defaults/environment variables")


# Operator
MINER_WALLET = os.getenv("MINER_WALLET", "nexa:nqtsq5g59fu9g23fkdgfmxpsatwekq6wv6wmn66g20srq2dk")
MINER_WORKER = os.getenv("MINER_WORKER", "4070")
MINER_USERNAME = os.getenv("MINER_USERNAME") or None

# Miner binary
MINER_BINARY_PATH = os.getenv("MINER_BINARY_PATH", "lolMiner")
MINER_ALGORITHM = os.getenv("MINER_ALGORITHM", "NEXA")
MINER_POOL = os.getenv("MINER_POOL", "nexa.2miners.com:5050")
MINER_API_HOST = os.getenv("MINER_API_HOST", "127.0.0.1")
MINER_API_PORT = int(os.getenv("MINER_API_PORT", "4067"))
MINER_SUMMARY_URL = f"http://{MINER_API_HOST}:{MINER_API_PORT}/summary"
MINER_STOP_TIMEOUT = float(os.getenv("MINER_STOP_TIMEOUT", "10"))

# Backend session parameters
SESSION_ALGORITHM = os.getenv("SESSION_ALGORITHM", "NEXA")
SESSION_DIFFICULTY = os.getenv("SESSION_DIFFICULTY", "medium")

# Timers (seconds)
STATS_POLL_INTERVAL = float(os.getenv("STATS_POLL_INTERVAL", "5"))
BACKEND_CHECK_INTERVAL = float(os.getenv("BACKEND_CHECK_INTERVAL", "10"))
POOL_STATS_INTERVAL = float(os.getenv("POOL_STATS_INTERVAL", "15"))

# Bounded windows
TELEMETRY_WINDOW_SIZE = int(os.getenv("TELEMETRY_WINDOW_SIZE", "20"))
LOG_BUFFER_SIZE = int(os.getenv("LOG_BUFFER_SIZE", "100"))
WAITING_LOG_PROBABILITY = float(os.getenv("WAITING_LOG_PROBABILITY", "0.1"))

# External pool
POOL_STATS_URL = os.getenv("POOL_STATS_URL", "https://api.2miners.com/v2/nexa/miner/{wallet}")
POOL_COIN = os.getenv("POOL_COIN", "NEXA")

# Dashboard / metrics
DASHBOARD_REFRESH_INTERVAL = float(os.getenv("DASHBOARD_REFRESH_INTERVAL", "1.0"))
METRICS_PORT = int(os.getenv("METRICS_PORT", "0")) or None

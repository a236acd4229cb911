"""Application configuration. Loads from environment and .env file."""
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
# Load .env from cwd, then backend/.env, then project root .env
load_dotenv()
load_dotenv(BASE_DIR / ".env")
load_dotenv(BASE_DIR.parent / ".env")

# Concurrency
MAX_WORKERS = int(os.getenv("MAX_WORKERS", str(os.cpu_count() or 4)))
# Bounded hand-off between the path producer and the worker pool
QUEUE_SIZE = int(os.getenv("QUEUE_SIZE", str(MAX_WORKERS * 2)))

# Encoder defaults (env overrides)
DEFAULT_QUALITY = float(os.getenv("DEFAULT_QUALITY", "90"))
DEFAULT_AVIF_SPEED = int(os.getenv("DEFAULT_AVIF_SPEED", "3"))
DEFAULT_WEBP_METHOD = int(os.getenv("DEFAULT_WEBP_METHOD", "4"))

# Server (for uvicorn)
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))
# CORS: comma-separated origins, e.g. "http://localhost:5173,http://127.0.0.1:5173"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("imgc")

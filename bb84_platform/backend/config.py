"""
config.py — Application configuration.
"""
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# QKD defaults
QBER_THRESHOLD = float(os.environ.get("BB84_QBER_THRESHOLD", "0.11"))
# Refuse final-key generation once QBER reaches the threshold
STRICT_QBER_GATE = _env_bool("BB84_STRICT_QBER_GATE", True)
EVE_INTERCEPT_RATE = float(os.environ.get("BB84_EVE_INTERCEPT_RATE", "1.0"))
DEFAULT_PHOTON_COUNT = int(os.environ.get("BB84_DEFAULT_PHOTON_COUNT", "20"))
MAX_PHOTON_COUNT = 4096

# Server
HOST = os.environ.get("BB84_HOST", "0.0.0.0")
PORT = int(os.environ.get("BB84_PORT", "3001"))

# Logging
LOG_LEVEL = os.environ.get("BB84_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.environ.get("BB84_LOG_FILE")  # unset = console only

# CORS
CORS_ORIGINS = os.environ.get(
    "CORS_ORIGINS",
    "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173",
).split(",")

import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Shared store. Clients and the cleanup job connect here; the server hosts it.
    STORE_URL = os.environ.get("ODDWORD_STORE_URL", "")
    STORE_TIMEOUT_SEC = int(os.environ.get("STORE_TIMEOUT_SEC", "5"))

    # Game
    ROUND_DURATION_SEC = int(os.environ.get("ROUND_DURATION_SEC", "180"))
    MIN_PLAYERS = int(os.environ.get("MIN_PLAYERS", "2"))
    MAX_PLAYERS = int(os.environ.get("MAX_PLAYERS", "10"))
    PRIVATE_WORDS_PER_PLAYER = int(os.environ.get("PRIVATE_WORDS_PER_PLAYER", "2"))

    # Maintenance
    ROOM_MAX_AGE_HOURS = int(os.environ.get("ROOM_MAX_AGE_HOURS", "24"))
    # 0 disables the in-process cleanup task.
    CLEANUP_INTERVAL_SEC = int(os.environ.get("CLEANUP_INTERVAL_SEC", "0"))

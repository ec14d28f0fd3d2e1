import os

DB = {
    "host": os.getenv("HOLYVERSO_DB_HOST", "localhost"),
    "port": int(os.getenv("HOLYVERSO_DB_PORT", "5432")),
    "dbname": os.getenv("HOLYVERSO_DB_NAME", "holyverso"),
    "user": os.getenv("HOLYVERSO_DB_USER", "holyverso"),
    "password": os.getenv("HOLYVERSO_DB_PASSWORD", "holyverso"),
}

API_TITLE = "HolyVerso API"
API_VERSION = "0.1.0"

BIBLE_API_BASE_URL = os.getenv("BIBLE_API_BASE_URL", "https://www.biblia.la/api")
BIBLE_API_TIMEOUT_SEC = float(os.getenv("BIBLE_API_TIMEOUT_SEC", "10"))
BIBLE_API_SLOW_MS = int(os.getenv("BIBLE_API_SLOW_MS", "1500"))

RANDOM_VERSE_API_URL = os.getenv("RANDOM_VERSE_API_URL", "https://bible-api.com/data/web/random")
RANDOM_VERSE_TRANSLATION = os.getenv("RANDOM_VERSE_TRANSLATION", "web")
USER_AGENT = os.getenv("HOLYVERSO_USER_AGENT", "HolyVerso/1.0")

CHAPTER_CACHE_TTL_SEC = int(os.getenv("CHAPTER_CACHE_TTL_SEC", "900"))
CHAPTER_CACHE_REDIS = os.getenv("CHAPTER_CACHE_REDIS", "0") == "1"
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

LIBRARY_PATH = os.getenv("LIBRARY_PATH", "storage/library")
VERSE_SELECTOR = os.getenv("VERSE_SELECTOR", "library")
VERSE_AUTO_RESET = os.getenv("VERSE_AUTO_RESET", "1") == "1"

CACHE_SIZE_THRESHOLD = int(os.getenv("CACHE_SIZE_THRESHOLD", "2000"))
THEME_BIAS_PROBABILITY = float(os.getenv("THEME_BIAS_PROBABILITY", "0.7"))
PREFER_CACHED_PROBABILITY = float(os.getenv("PREFER_CACHED_PROBABILITY", "0.5"))
TOP_THEMES_LIMIT = int(os.getenv("TOP_THEMES_LIMIT", "3"))
SEED_MAX_ATTEMPTS = int(os.getenv("SEED_MAX_ATTEMPTS", "3"))

DEFAULT_VERSION_CODE = os.getenv("DEFAULT_VERSION_CODE", "rv1960")
DEFAULT_VERSION_NAMES = ("Reina-Valera 1960", "Reina Valera 1960")

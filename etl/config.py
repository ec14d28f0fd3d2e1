# etl/config.py
import os

DB = {
    "host": os.getenv("HOLYVERSO_DB_HOST", "localhost"),
    "port": int(os.getenv("HOLYVERSO_DB_PORT", "5432")),
    "dbname": os.getenv("HOLYVERSO_DB_NAME", "holyverso"),
    "user": os.getenv("HOLYVERSO_DB_USER", "holyverso"),
    "password": os.getenv("HOLYVERSO_DB_PASSWORD", "holyverso"),
}

# curated verse files, one JSON array per theme
LIBRARY_PATH = os.getenv("LIBRARY_PATH", "storage/library")

# upstream version catalog retries
MAX_RETRY = int(os.getenv("ETL_MAX_RETRY", "3"))

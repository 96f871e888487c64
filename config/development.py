import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "opsdesk"),
}

# Token encoded in the office check-in QR code
QR_TOKEN = os.getenv("QR_TOKEN", "OPSDESK_CHECKIN")
UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "uploads")

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# Daily recurring instances completed within the cutoff after their due time are auto-approved.
# Evidence rules still apply first. Per-user task settings override these defaults.
TASK_AUTO_APPROVE_DAILY = bool(int(os.getenv("TASK_AUTO_APPROVE_DAILY", "1")))
TASK_AUTO_APPROVE_CUTOFF_HOURS = int(os.getenv("TASK_AUTO_APPROVE_CUTOFF_HOURS", "2"))

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Optional: also seed demo data on startup
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

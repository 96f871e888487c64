import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "opsdesk"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "opsdesk"),
}

QR_TOKEN = os.getenv("QR_TOKEN", "OPSDESK_CHECKIN")
UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "/var/lib/opsdesk/uploads")

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

TASK_AUTO_APPROVE_DAILY = bool(int(os.getenv("TASK_AUTO_APPROVE_DAILY", "1")))
TASK_AUTO_APPROVE_CUTOFF_HOURS = int(os.getenv("TASK_AUTO_APPROVE_CUTOFF_HOURS", "2"))

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

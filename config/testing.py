import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "opsdesk_test"),
}

QR_TOKEN = "TEST_CHECKIN"
UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "/tmp/opsdesk-uploads")

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

TASK_AUTO_APPROVE_DAILY = True
TASK_AUTO_APPROVE_CUTOFF_HOURS = 2

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_SESSION_DAYS = 7
DEFAULT_HISTORY_LIMIT = 30
DEFAULT_LATE_THRESHOLD_MINUTES = 15
DEFAULT_REPORT_DAYS = 7
DEFAULT_PAGE_SIZE = 50

# Tasks
DEFAULT_DUE_TIME = "23:59"
DEFAULT_AUTO_APPROVE_CUTOFF_HOURS = 2
TASK_HISTORY_DAYS = 30
MAX_AUTO_APPROVE_CUTOFF_HOURS = 168
MAX_COMMENT_LENGTH = 2000
MAX_EVIDENCE_FILE_BYTES = 50 * 1024 * 1024

# Inventory
DEFAULT_LOW_STOCK_THRESHOLD = 10

# Fulfillment
MAX_PACKING_FILE_BYTES = 20 * 1024 * 1024

# Chat
MAX_MESSAGE_LENGTH = 4000

"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_WORK_BUDGET_SECONDS = 9 * 60 * 60
DEFAULT_TICK_SECONDS = 1
DEFAULT_HTTP_TIMEOUT = 20
DEFAULT_LOCATION = "Office"
DEFAULT_JPEG_QUALITY = 90

SESSION_FILE_TEMPLATE = "session-{employee_id}.json"
HISTORY_FILE_TEMPLATE = "history-{employee_id}.json"
CLOSED_RECORD_FILE_TEMPLATE = "last-closed-{employee_id}.json"

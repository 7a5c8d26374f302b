"""
Centralized constants for the MIZAN API.

Import from here instead of redefining in routers.
"""

# Upload limits
MAX_UPLOAD_ROWS = 200_000
MAX_PAIRWISE_RECORDS = 50     # pairwise breakdown is O(n^2) and synchronous

# Run states reported by GET /runs/{run_id}
RUN_STATUS_RUNNING = 'running'
RUN_STATUS_DONE = 'done'
RUN_STATUS_ERROR = 'error'

# Query/body keys never written to request logs
SENSITIVE_PARAMS = {"national_id", "phone", "nationalid", "id_number"}

from __future__ import annotations

# GH / API operations
GH_TIMEOUT_SECONDS = 60.0

# Idempotent GH read retry policy
GH_READ_RETRY_ATTEMPTS = 3
GH_READ_RETRY_DELAY_SECONDS = 1.0

# GitHub checks polling
CHECKS_INITIAL_INTERVAL_SECONDS = 10
CHECKS_INTERVAL_STEP_SECONDS = 10
CHECKS_MAX_INTERVAL_SECONDS = 60

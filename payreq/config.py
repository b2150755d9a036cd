"""Runtime configuration defaults for persistence and logging."""

from __future__ import annotations

import os

DB_PATH = os.environ.get("PAYREQ_DB_PATH", "data/payreq.db")

DEBUG_LOG_PATH = os.environ.get("PAYREQ_DEBUG_LOG", "/tmp/payreq-debug.log")

# ghaudit/core/context.py

import contextvars

run_id_ctx = contextvars.ContextVar("run_id", default=None)
owner_ctx = contextvars.ContextVar("owner", default=None)

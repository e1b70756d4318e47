"""
Gunicorn configuration for the Discord Counter worker.

Env vars that override defaults:
  PORT     — TCP port to bind
  WORKERS  — number of worker processes (default: 1)

Keep a single worker while SCHEDULER_ENABLED is on: every worker runs its own
scheduler, so N workers would start N sync cycles per interval.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "1"))

# Each worker runs Uvicorn's ASGI event loop inside Gunicorn's process manager.
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# A manual /trigger-update waits for the whole cycle: at 30s per group of 10
# servers plus retry backoff, a few hundred guilds need several minutes.
timeout = 900

# stdout only; the app's own log lines share the same stream.
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

# Graceful restart: give in-flight writes time to finish.
graceful_timeout = 30

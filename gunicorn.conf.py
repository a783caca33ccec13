"""
Gunicorn configuration for the Mastery Engine API.

Single-instance container deployment.
Env vars that override defaults:
  PORT     : TCP port to bind (default: 8000)
  WORKERS  : number of worker processes (default: 2)

Each worker holds its own goal-type cache; the cache only ever stores
values read from the database, so workers never disagree on a goal's type
for longer than an update round-trip.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "2"))

# Uvicorn's ASGI loop inside Gunicorn's process manager.
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# Kill a worker that hasn't responded in 120 s.
timeout = 120

# Stdout only; app loggers share the same stream.
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30

"""
Production Server Configuration

Run FastAPI with Uvicorn workers under Gunicorn.
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("BIND", f"0.0.0.0:{os.getenv('PORT', '8000')}")
backlog = 2048

# Worker processes. Uploaded keys are only shared between workers with the
# Redis credential store, so the in-memory store runs a single worker.
if os.getenv("CREDENTIALS_BACKEND", "memory").lower() == "redis":
    workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() * 2 + 1))
else:
    workers = 1
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 10000
max_requests_jitter = 1000
# BigQuery jobs over long date ranges can take a while
timeout = 180
keepalive = 5
graceful_timeout = 30

# Process naming
proc_name = "traffic-flow-api"

# Server mechanics
daemon = False
pidfile = None
tmp_upload_dir = None

# Logging
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
accesslog = "-"
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

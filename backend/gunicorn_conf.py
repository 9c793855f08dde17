# backend/gunicorn_conf.py

# Gunicorn config for the StoreBot API. The recovery scheduler runs as its own
# process (scheduler.py) so that worker count never multiplies automation runs.

import os

from app.config.settings import settings

bind = os.getenv("BIND", "0.0.0.0:8000")
workers = settings.workers
worker_class = "uvicorn.workers.UvicornWorker"

# Behind a reverse proxy
forwarded_allow_ips = "*"

# --- Logging ---
# Access and error logs go to stdout/stderr; app logs are formatted by structlog
accesslog = "-"
errorlog = "-"
loglevel = "info"

"""
Gunicorn configuration for the RMS server.

    gunicorn -c deploy/gunicorn.conf.py

Options come from the environment (HOST, PORT, DB_PATH, WEB_DIST,
SETUP_TOKEN, AUTH_SECRET, ...). The registry and the event databases are
SQLite files owned by one process, so exactly one worker is started.
"""
import os

wsgi_app = "rms_server.main:app_from_env()"

# Server socket
bind = f"{os.environ.get('HOST', '0.0.0.0')}:{os.environ.get('PORT', '3000')}"
backlog = 2048

# Worker processes
workers = 1
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 120
keepalive = 5

# Logging
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()

# Process naming
proc_name = "rms-server"

# Server mechanics
daemon = False

# Security
limit_request_line = 4094
limit_request_fields = 100
limit_request_field_size = 8190

"""
Gunicorn configuration for the APSIM builds API.

Usage:
    gunicorn -c gunicorn.conf.py apsim_builds.main:app
"""
import multiprocessing
import os

# Server Socket
bind = f"{os.getenv('HOST', '0.0.0.0')}:{os.getenv('PORT', '8000')}"
backlog = 2048

# Worker Processes
workers = int(os.getenv('GUNICORN_WORKERS', multiprocessing.cpu_count() + 1))
worker_class = 'uvicorn.workers.UvicornWorker'
max_requests = int(os.getenv('GUNICORN_MAX_REQUESTS', '1000'))
max_requests_jitter = int(os.getenv('GUNICORN_MAX_REQUESTS_JITTER', '50'))
timeout = int(os.getenv('GUNICORN_TIMEOUT', '60'))  # Github and Jenkins calls are bounded well below this
graceful_timeout = 30
keepalive = 5

# Process Naming
proc_name = 'apsim-builds'

# Logging
accesslog = os.getenv('GUNICORN_ACCESS_LOG', '-')  # '-' means stdout
errorlog = os.getenv('GUNICORN_ERROR_LOG', '-')   # '-' means stderr
loglevel = os.getenv('GUNICORN_LOG_LEVEL', 'info')
access_log_format = '%(h)s %(t)s "%(r)s" %(s)s %(b)s %(D)s'

# Server Mechanics
daemon = False
pidfile = None

# Security
limit_request_line = 4094
limit_request_fields = 100
limit_request_field_size = 8190

# Workers share one database; revision allocation is safe across processes
preload_app = True


def on_starting(server):
    """Called just before the master process is initialized."""
    server.log.info("Starting APSIM Builds API")


def post_fork(server, worker):
    """Called just after a worker has been forked."""
    server.log.info(f"Worker spawned (pid: {worker.pid})")


def worker_abort(worker):
    """Called when a worker received the SIGABRT signal."""
    worker.log.info(f"Worker received SIGABRT signal (pid: {worker.pid})")

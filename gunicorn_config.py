"""
Gunicorn configuration for the Arohan school office API

Usage:
    gunicorn -c gunicorn_config.py arohan.wsgi:application
"""

import multiprocessing
import os

# Behind nginx on a unix socket by default; GUNICORN_BIND=127.0.0.1:8000 for TCP
bind = os.environ.get('GUNICORN_BIND', 'unix:/run/gunicorn/arohan.sock')

# sync workers
workers = int(os.environ.get('GUNICORN_WORKERS', multiprocessing.cpu_count() * 2 + 1))
worker_class = "sync"
timeout = 60
keepalive = 2

accesslog = os.environ.get('GUNICORN_ACCESS_LOG', '-')
errorlog = os.environ.get('GUNICORN_ERROR_LOG', '-')
loglevel = os.environ.get('GUNICORN_LOG_LEVEL', 'info')
access_log_format = '%(h)s %(u)s %(t)s "%(r)s" %(s)s %(b)s %(D)s'

proc_name = "arohan"
daemon = False
preload_app = True

max_requests = 1000
max_requests_jitter = 50
graceful_timeout = 30

"""
Gunicorn configuration for the Z Games scoring API.

    gunicorn zgames.main:app -c deploy/gunicorn.conf.py

With more than one worker, leaderboard events only reach every WebSocket
client when FEATURE_REDIS_BROADCAST=true.
"""
import os
import multiprocessing

bind = os.environ.get("BIND", "0.0.0.0:8000")
backlog = 2048

workers = int(os.environ.get("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
timeout = 60
keepalive = 5

# Logging
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

proc_name = "zgames"

daemon = False
pidfile = "/tmp/zgames-gunicorn.pid"

limit_request_line = 4094
limit_request_fields = 100
limit_request_field_size = 8190


def when_ready(server):
    if workers > 1 and os.environ.get("FEATURE_REDIS_BROADCAST", "false").lower() not in ("true", "1", "yes", "on", "enabled"):
        server.log.warning(
            "Running %s workers without FEATURE_REDIS_BROADCAST: "
            "leaderboard events stay inside the worker that recorded them", workers
        )

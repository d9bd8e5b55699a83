# =============================================================================
# Feature Roadmap - Gunicorn Production Configuration
# =============================================================================
import os
import multiprocessing

bind = f"0.0.0.0:{os.environ.get('PORT', '8080')}"
wsgi_app = "run:app"

# Threads share one BillingMode cache per worker process
workers = int(os.environ.get('WEB_CONCURRENCY', min(multiprocessing.cpu_count() * 2 + 1, 4)))
threads = int(os.environ.get('GUNICORN_THREADS', 4))
worker_class = "gthread"
preload_app = True

# Stripe gives up on a webhook delivery after 30s
timeout = 30
graceful_timeout = 30
keepalive = 5

accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info")
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(L)s "%({x-request-id}i)s"'

max_requests = 1000
max_requests_jitter = 50

# Webhook payloads and JSON bodies are small
limit_request_line = 8190
limit_request_fields = 100
limit_request_field_size = 8190

forwarded_allow_ips = "*"


def post_fork(server, worker):
    """Start each worker with an empty billing mode cache."""
    from roadmap.services.billing_mode import billing_mode_cache
    billing_mode_cache.invalidate()

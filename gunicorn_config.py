import multiprocessing
import os

# gunicorn -c gunicorn_config.py wsgi:app
bind = os.environ.get('BIND', '0.0.0.0:8000')

# Cart and price views are IO-bound (DB reads per line)
workers = int(os.environ.get('WEB_CONCURRENCY', multiprocessing.cpu_count() * 2 + 1))
threads = 2
worker_class = 'gthread'

# Resilience
timeout = 60
max_requests = 1000
max_requests_jitter = 100
keepalive = 5

# Logging: app logs go through storefront.utils.logging; these are gunicorn's own
accesslog = '-'
errorlog = '-'
loglevel = 'info'
capture_output = True

import os

# Gunicorn config variables
# Run from the app/ directory: gunicorn -c gunicorn_conf.py main:app
bind = os.getenv("BIND", "127.0.0.1:8000")
# Workers share nothing in memory, so STORAGE_BACKEND=memory only makes sense with 1.
workers = int(os.getenv("WEB_CONCURRENCY", "2"))
worker_class = "uvicorn.workers.UvicornWorker"
# Uploads are up to 10MB of base64 JSON
timeout = 120
keepalive = 5
max_requests = 1000
max_requests_jitter = 50
accesslog = os.getenv("ACCESS_LOG", "-")
errorlog = os.getenv("ERROR_LOG", "-")
loglevel = os.getenv("LOG_LEVEL", "info")
daemon = False

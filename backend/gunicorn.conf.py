# Bind & workers
bind = "0.0.0.0:8000"
# Each worker holds its own access-token cache; scale with threads first.
workers = 2  # override with env GUNICORN_WORKERS
threads = 4
timeout = 30
graceful_timeout = 30
keepalive = 5

# Logs to stdout/stderr (collected by Docker)
accesslog = "-"
errorlog = "-"
loglevel = "info"  # override with env LOG_LEVEL

# Honour proxy headers (ProxyFix trusts one hop)
forwarded_allow_ips = "*"
proxy_protocol = False

wsgi_app = "gatekeeper.factory:create_app()"

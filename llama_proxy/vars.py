import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "llama-cors-proxy")

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")


def allowed_domains_raw() -> str:
    # Re-read on every request so the allow-list follows the process environment
    return os.environ.get("ALLOWED_DOMAINS", "")


def proxy_timeout_raw() -> str:
    return os.environ.get("PROXY_TIMEOUT", "")

import os


class Config:
    """Reads service and client configuration from environment variables."""

    def __init__(self):
        self.http_host = os.getenv("HTTP_HOST", "0.0.0.0")
        self.http_port = int(os.getenv("HTTP_PORT", "8000"))
        self.api_prefix = os.getenv("API_PREFIX", "/api").rstrip("/")
        self.store_backend = os.getenv("STORE_BACKEND", "memory").lower()
        self.data_dir = os.getenv("DATA_DIR", "/data")
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        # client side
        self.backend_url = os.getenv("BACKEND_URL", "http://localhost:8000").rstrip("/")
        self.join_base_url = os.getenv("JOIN_BASE_URL", "http://localhost:3000").rstrip("/")
        self.poll_interval = float(os.getenv("POLL_INTERVAL", "2"))
        self.client_timeout = float(os.getenv("CLIENT_TIMEOUT", "5"))

        self.client_http_retries = max(int(os.getenv("CLIENT_HTTP_RETRIES", "1")), 1)
        self.client_http_retry_backoff_ms = max(
            int(os.getenv("CLIENT_HTTP_RETRY_BACKOFF_MS", "150")), 0
        )
        self.transient_error_threshold = max(
            int(os.getenv("TRANSIENT_ERROR_THRESHOLD", "5")), 1
        )
        self.not_found_limit = max(int(os.getenv("NOT_FOUND_LIMIT", "2")), 1)

    @property
    def sqlite_path(self):
        return f"{self.data_dir}/tasbih.db"

    @property
    def profile_path(self):
        return f"{self.data_dir}/profile.json"


config = Config()

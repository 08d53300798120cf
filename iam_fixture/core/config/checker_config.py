"""Policy checker settings loaded from environment variables."""
import os


class CheckerConfig:
    gcloud: str
    timeout: float
    max_attempts: int
    retry_wait: float
    max_workers: int
    log_level: str
    log_json: bool

    def __init__(self):
        self.gcloud = os.getenv("IAM_FIXTURE_GCLOUD", "gcloud")
        self.timeout = float(os.getenv("IAM_FIXTURE_TIMEOUT", "60"))
        self.max_attempts = max(1, int(os.getenv("IAM_FIXTURE_MAX_ATTEMPTS", "1")))
        self.retry_wait = float(os.getenv("IAM_FIXTURE_RETRY_WAIT", "2"))
        self.max_workers = max(1, int(os.getenv("IAM_FIXTURE_MAX_WORKERS", "4")))
        self.log_level = os.getenv("IAM_FIXTURE_LOG_LEVEL", "INFO").upper()
        self.log_json = os.getenv("IAM_FIXTURE_LOG_JSON", "").lower() in ("1", "true", "yes")

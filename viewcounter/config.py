import os
from dataclasses import dataclass

# -----------------------------------------------------------------------------
# Config
# -----------------------------------------------------------------------------
DEFAULT_AXIOM_URL = "https://api.axiom.co"
DEFAULT_PORT = 8080
DEFAULT_TIMEOUT = 10.0
DEFAULT_SELF_ID = "view-counter"
DEFAULT_INGEST_WORKERS = 4
DEFAULT_INGEST_QUEUE = 1000

REQUIRED = ("AXIOM_TOKEN", "AXIOM_ORG_ID", "AXIOM_DATASET")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class Settings:
    axiom_token: str
    axiom_org_id: str
    axiom_dataset: str
    axiom_url: str = DEFAULT_AXIOM_URL
    axiom_timeout: float = DEFAULT_TIMEOUT
    port: int = DEFAULT_PORT
    self_id: str = DEFAULT_SELF_ID
    ingest_workers: int = DEFAULT_INGEST_WORKERS
    ingest_queue: int = DEFAULT_INGEST_QUEUE
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        """
        Read settings from the environment and fail on the first startup
        instead of on every request. All problems are reported together.
        """
        env = os.environ if environ is None else environ
        problems = [f"{name} is not set" for name in REQUIRED if not env.get(name)]

        def number(name, default, kind):
            raw = env.get(name)
            if raw is None or raw == "":
                return default
            try:
                value = kind(raw)
            except ValueError:
                problems.append(f"{name} must be a number, got {raw!r}")
                return default
            if value <= 0:
                problems.append(f"{name} must be positive, got {raw!r}")
            return value

        timeout = number("AXIOM_TIMEOUT", DEFAULT_TIMEOUT, float)
        port = number("PORT", DEFAULT_PORT, int)
        workers = number("VIEWCOUNTER_INGEST_WORKERS", DEFAULT_INGEST_WORKERS, int)
        queue = number("VIEWCOUNTER_INGEST_QUEUE", DEFAULT_INGEST_QUEUE, int)

        if problems:
            raise ConfigError("Invalid configuration: " + "; ".join(problems))

        return cls(
            axiom_token=env["AXIOM_TOKEN"],
            axiom_org_id=env["AXIOM_ORG_ID"],
            axiom_dataset=env["AXIOM_DATASET"],
            axiom_url=env.get("AXIOM_URL") or DEFAULT_AXIOM_URL,
            axiom_timeout=timeout,
            port=port,
            self_id=env.get("VIEWCOUNTER_SELF_ID") or DEFAULT_SELF_ID,
            ingest_workers=workers,
            ingest_queue=queue,
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _str_to_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.lower() in ("1", "true", "yes", "y", "on")


@dataclass
class Settings:
    api_base_url: str
    http_timeout_s: float
    storage_backend: str
    storage_prefix: str
    pending_action_ttl_s: int
    auth_channel: str
    redis_host: str | None
    redis_port: int
    redis_password: str | None
    redis_tls: bool
    redis_db: int
    redis_tls_verify: bool
    use_local_redis: bool


def get_settings() -> Settings:
    use_local = _str_to_bool(os.getenv("USE_LOCAL_REDIS"))

    raw_host = os.getenv("GAMETEAM_REDIS_HOST")
    raw_port = os.getenv("GAMETEAM_REDIS_PORT")
    raw_pwd = os.getenv("GAMETEAM_REDIS_PASSWORD")
    raw_tls = os.getenv("GAMETEAM_REDIS_TLS")
    raw_db = os.getenv("GAMETEAM_REDIS_DB")
    raw_tls_verify = os.getenv("GAMETEAM_REDIS_TLS_VERIFY", "true")

    if use_local:
        # Local redis wins over whatever remote values are set
        host = "127.0.0.1"
        port = 6379
        password = None
        tls = False
        db = int(raw_db or "0")
        tls_verify = False
    else:
        host = raw_host
        port = int(raw_port or "6379")
        password = raw_pwd
        tls = _str_to_bool(raw_tls)
        db = int(raw_db or "0")
        tls_verify = _str_to_bool(raw_tls_verify)

    default_backend = "redis" if host else "memory"
    backend = os.getenv("GAMETEAM_STORAGE", default_backend).strip().lower()
    if backend not in ("memory", "redis"):
        raise ValueError(f"Unknown GAMETEAM_STORAGE backend: {backend}")

    return Settings(
        api_base_url=os.getenv("GAMETEAM_API_URL", "http://localhost:8080"),
        http_timeout_s=float(os.getenv("GAMETEAM_HTTP_TIMEOUT_S", "30")),
        storage_backend=backend,
        storage_prefix=os.getenv("GAMETEAM_STORAGE_PREFIX", "gameteam_"),
        pending_action_ttl_s=int(os.getenv("GAMETEAM_PENDING_TTL_S", "600")),
        auth_channel=os.getenv("GAMETEAM_AUTH_CHANNEL", "gameteam:auth-change"),
        redis_host=host,
        redis_port=port,
        redis_password=password,
        redis_tls=tls,
        redis_db=db,
        redis_tls_verify=tls_verify,
        use_local_redis=use_local,
    )

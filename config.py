import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 4000
    jwt_secret: str = "change-this-dev-secret"
    jwt_algorithm: str = "HS256"
    frontend_url: str = "http://localhost:3000"
    bcrypt_rounds: int = 10
    seed_demo_data: bool = True
    enable_debug_routes: bool = True
    log_level: str = "INFO"


def get_settings() -> Settings:
    """Read settings from the environment (and .env). Call once at startup."""
    return Settings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "4000")),
        jwt_secret=os.getenv("JWT_SECRET", "change-this-dev-secret"),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000"),
        bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "10")),
        seed_demo_data=_env_bool("SEED_DEMO_DATA", True),
        enable_debug_routes=_env_bool("ENABLE_DEBUG_ROUTES", True),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

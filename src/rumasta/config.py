import os


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class Settings:
    PROJECT_NAME: str = "rumasta"
    DEBUG: bool = _env_flag("RUMASTA_DEBUG")
    LOG_DIR: str = os.environ.get("RUMASTA_LOG_DIR", "log")
    LOG_FILE: str = "rumasta.log"
    LOG_TO_DB: bool = _env_flag("RUMASTA_LOG_TO_DB")
    DB_DIR: str = os.environ.get("RUMASTA_DB_DIR", "db")
    DB_FILE: str = "rumasta.db"
    QUESTIONS_DIR: str = os.environ.get(
        "RUMASTA_QUESTIONS_DIR",
        os.path.join(os.path.dirname(__file__), "questions"),
    )
    ASSIGNMENTS_PER_LEVEL: int = 10
    DEFAULT_LEVEL: str = "A1-1"
    SESSION_COOKIE_NAME: str = "quiz_session_id"
    USER_COOKIE_NAME: str = "rumasta_user_id"
    LEVEL_COOKIE_NAME: str = "rumasta_currentLevel"
    SESSION_TIMEOUT_MINUTES: int = 120
    ROOT_PATH: str = os.environ.get("ROOT_PATH", "")


settings = Settings()

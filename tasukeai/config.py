"""Application settings, read from the environment (and a local .env file)."""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Base settings."""

    ENV = os.environ.get("TASUKEAI_ENV", "production")
    DEBUG = ENV == "development"
    LOG_DIR = os.environ.get("LOG_DIR", "logs")
    LOG_TO_FILE = _env_bool("LOG_TO_FILE", True)

    EXPORT_PREFIX = os.environ.get("EXPORT_PREFIX", "tasukeai")
    CSV_INCLUDE_BOM = _env_bool("CSV_INCLUDE_BOM", True)

    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-3-pro-preview")
    GEMINI_TIMEOUT_SECONDS = float(os.environ.get("GEMINI_TIMEOUT_SECONDS", 60))

    SEED_ADMINS = int(os.environ.get("SEED_ADMINS", 3))
    SEED_NURSES = int(os.environ.get("SEED_NURSES", 70))
    SEED_ASSISTANTS = int(os.environ.get("SEED_ASSISTANTS", 60))
    SAMPLE_DATA_PATH = os.environ.get("SAMPLE_DATA_PATH", "")


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    DEBUG = False


class TestingConfig(Config):
    DEBUG = True
    LOG_TO_FILE = False
    GEMINI_API_KEY = ""


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": ProductionConfig,
}


def get_config(name: str | None = None) -> type[Config]:
    return config.get(name or Config.ENV, config["default"])

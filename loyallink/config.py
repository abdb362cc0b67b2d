"""
Configuration management for LoyalLink.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


class BaseConfig:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Public URL used in QR codes and claim links
    APP_URL = os.getenv('APP_URL', 'http://localhost:3000')

    # Frontend origins allowed by CORS (comma separated)
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv('CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000').split(',')
        if origin.strip()
    ]

    # Reward lifecycle defaults
    DEFAULT_VISIT_GOAL = 5
    CLAIM_TOKEN_MAX_ATTEMPTS = 10
    ACTIVE_CUSTOMER_DAYS = 30
    DEFAULT_INACTIVE_DAYS = 30
    CAMPAIGN_COOLDOWN_HOURS = 24  # one offer campaign per customer per window
    CAMPAIGN_HISTORY_LIMIT = 50

    # Notifications
    EMAIL_PROVIDER = os.getenv('EMAIL_PROVIDER', 'sendgrid')  # sendgrid, console
    SENDGRID_API_KEY = os.getenv('SENDGRID_API_KEY', '')
    EMAIL_FROM = os.getenv('EMAIL_FROM', 'noreply@loyallink.com')
    EMAIL_FROM_NAME = os.getenv('EMAIL_FROM_NAME', 'LoyalLink')

    WHATSAPP_INSTANCE_ID = os.getenv('WHATSAPP_INSTANCE_ID', '')
    WHATSAPP_ACCESS_TOKEN = os.getenv('WHATSAPP_ACCESS_TOKEN', '')

    NOTIFICATION_MAX_ATTEMPTS = _env_int('NOTIFICATION_MAX_ATTEMPTS', 3)
    NOTIFICATION_RETRY_BACKOFF = _env_float('NOTIFICATION_RETRY_BACKOFF', 1.0)  # seconds, linear
    NOTIFICATION_FAILURE_POLICY = os.getenv('NOTIFICATION_FAILURE_POLICY', 'log_and_continue')  # or 'raise'
    NOTIFICATION_TIMEOUT = 10  # seconds per outbound HTTP call


class DevelopmentConfig(BaseConfig):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///loyallink_dev.db'  # SQLite fallback for local dev
    )
    EMAIL_PROVIDER = os.getenv('EMAIL_PROVIDER', 'console')


class ProductionConfig(BaseConfig):
    """Production configuration."""
    DEBUG = False

    # SQLAlchemy requires postgresql:// not postgres://
    _db_url = os.getenv('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = _db_url

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 5,
        'pool_recycle': 300,
        'pool_pre_ping': True,  # Verify connections before using
    }

    _secret_key = os.getenv('SECRET_KEY', '')

    @classmethod
    def validate_secret_key(cls) -> str:
        """
        Validate SECRET_KEY in production environment.

        Raises:
            RuntimeError: If SECRET_KEY is missing, too short, or an obvious placeholder
        """
        if not cls._secret_key:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY environment variable is not set!\n"
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )

        lower_key = cls._secret_key.lower()
        for pattern in ('dev', 'change', 'default', 'test', 'secret', 'password'):
            if pattern in lower_key:
                raise RuntimeError(
                    f"CRITICAL: SECRET_KEY contains '{pattern}' which suggests it's not secure!"
                )

        if len(cls._secret_key) < 32:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY is too short (minimum 32 characters required)!"
            )

        return cls._secret_key

    SECRET_KEY = _secret_key  # Validated at app startup


class TestingConfig(BaseConfig):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    EMAIL_PROVIDER = 'console'
    WHATSAPP_INSTANCE_ID = ''
    WHATSAPP_ACCESS_TOKEN = ''
    NOTIFICATION_RETRY_BACKOFF = 0
    NOTIFICATION_FAILURE_POLICY = 'log_and_continue'


config_map = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name: str = 'development'):
    """Get configuration class by name."""
    return config_map.get(config_name, DevelopmentConfig)


def validate_config(config_name: str = 'development') -> None:
    """
    Validate configuration before app startup.

    Raises:
        RuntimeError: If validation fails in production
    """
    if config_name == 'production':
        ProductionConfig.validate_secret_key()

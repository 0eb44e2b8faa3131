"""Application configuration classes selected by environment name."""

import os


def _database_url(default):
    url = os.getenv('DATABASE_URL', default)
    # Handle Render's postgres:// vs postgresql:// issue
    if url and url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    return url


class Config:
    """Base configuration shared by every environment."""

    SQLALCHEMY_DATABASE_URI = _database_url('sqlite:///lendit.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    JWT_ACCESS_TOKEN_EXPIRES = int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES', 86400))

    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')

    # Payments
    PAYMENT_GATEWAY = os.getenv('PAYMENT_GATEWAY', 'mock')  # 'mock' or 'stripe'
    STRIPE_SECRET_KEY = os.getenv('STRIPE_SECRET_KEY')
    PAYMENT_CURRENCY = os.getenv('PAYMENT_CURRENCY', 'eur')
    PLATFORM_ACCOUNT_ID = os.getenv('PLATFORM_ACCOUNT_ID', 'platform')

    # Lending rules
    DEPOSIT_MULTIPLIER = float(os.getenv('DEPOSIT_MULTIPLIER', '5'))
    PREMIUM_DISCOUNT_RATE = float(os.getenv('PREMIUM_DISCOUNT_RATE', '10'))
    FREE_LISTING_LIMIT = int(os.getenv('FREE_LISTING_LIMIT', '3'))


class DevelopmentConfig(Config):
    DEBUG = True


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    JWT_SECRET_KEY = 'test-secret-key-for-testing'
    RATELIMIT_ENABLED = False
    PAYMENT_GATEWAY = 'mock'


class ProductionConfig(Config):
    DEBUG = False


config_by_name = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}

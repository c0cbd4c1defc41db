import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY')

    # Database
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # JWT Configuration (tokens are issued by the auth service, we only verify them)
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=24)

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Criteria suggestions
    SUGGESTION_MIN_SCORE = float(os.environ.get('SUGGESTION_MIN_SCORE', '0.1'))
    SUGGESTION_TOP_N = int(os.environ.get('SUGGESTION_TOP_N', '3'))
    SUGGESTION_TIMEOUT_SECONDS = float(os.environ.get('SUGGESTION_TIMEOUT_SECONDS', '5.0'))
    SUGGESTION_MAX_WORKERS = int(os.environ.get('SUGGESTION_MAX_WORKERS', '8'))

    # Flask settings
    DEBUG = False
    TESTING = False

class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')

class ProductionConfig(Config):
    DEBUG = False

class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('TEST_DATABASE_URL', 'sqlite:///:memory:')
    JWT_SECRET_KEY = os.environ.get('TEST_JWT_SECRET_KEY', 'test-jwt-secret-key-with-enough-length')
    SUGGESTION_TIMEOUT_SECONDS = 2.0

config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}

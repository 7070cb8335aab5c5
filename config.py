import os
from pathlib import Path

# Project base directory
BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base application configuration"""

    # Flask secret key (replace in production)
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # SQLite database by default
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        f'sqlite:///{BASE_DIR / "karaoke_box.db"}'

    # Disable modification tracking (saves memory)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Venue timezone, every local time in billing is expressed in it
    TIMEZONE = 'Asia/Ho_Chi_Minh'

    DATE_FORMAT = '%d/%m/%Y'
    DATETIME_FORMAT = '%d/%m/%Y %H:%M'

    CURRENCY = 'VND'

    # Billing settings
    BILL_ROUNDING_UNIT = 1000
    FREE_HOUR_MIN_FNB_TOTAL = 35000
    FREE_HOUR_MIN_SESSION_MINUTES = 120
    FREE_HOUR_BUDGET_MINUTES = 60
    FREE_HOUR_WINDOW = (10, 19)  # local hours, [start, end)

    # Schedules
    MAX_BOOKING_HOURS = 8

    # Receipt printing
    PRINT_API_URL = os.environ.get('PRINT_API_URL', 'http://localhost:4000')
    PRINTER_ID = os.environ.get('PRINTER_ID', 'counter-01')
    PRINT_COOLDOWN_SECONDS = float(os.environ.get('PRINT_COOLDOWN_SECONDS', 3))
    PRINT_TIMEOUT_SECONDS = float(os.environ.get('PRINT_TIMEOUT_SECONDS', 10))
    VENUE_NAME = os.environ.get('VENUE_NAME', 'Jozo Music Box')
    VENUE_ADDRESS = os.environ.get('VENUE_ADDRESS', '247/5 Phan Trung, Tam Hiep, Bien Hoa')


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


class TestingConfig(Config):
    """Configuration for the test suite"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    PRINT_COOLDOWN_SECONDS = 0


# Configuration registry
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}

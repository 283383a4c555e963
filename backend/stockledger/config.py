# backend/stockledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB file in the working directory by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Tenant resolution: attempts and linear backoff (base * attempt number)
    TENANT_RESOLVE_ATTEMPTS = int(os.environ.get("TENANT_RESOLVE_ATTEMPTS", "3"))
    TENANT_RESOLVE_BACKOFF_SECONDS = float(os.environ.get("TENANT_RESOLVE_BACKOFF_SECONDS", "0.5"))

    # Minimum time a successful submission takes before returning
    PRODUCT_SUBMIT_MIN_SECONDS = float(os.environ.get("PRODUCT_SUBMIT_MIN_SECONDS", "1.0"))
    TRANSACTION_SUBMIT_MIN_SECONDS = float(os.environ.get("TRANSACTION_SUBMIT_MIN_SECONDS", "0.8"))

    DEFAULT_ALERT_THRESHOLD = 10
    DEFAULT_UNIT_LABEL = "unit"

    PLAN_LIMITS = {
        "free": {"max_products": 50, "max_transactions_per_month": 500},
        "premium": {"max_products": 1000, "max_transactions_per_month": 10000},
        "enterprise": {"max_products": 100000, "max_transactions_per_month": 1000000},
    }


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "DEBUG"

    PRODUCT_SUBMIT_MIN_SECONDS = 0.0
    TRANSACTION_SUBMIT_MIN_SECONDS = 0.0

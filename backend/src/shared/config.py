"""
Configuration module for Lambda handlers.
Loads all environment variables needed by the testing request backend.
"""
import os


class Config:
    """Centralized configuration from environment variables."""

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # DynamoDB Tables
    REQUESTS_TABLE = os.environ.get('REQUESTS_TABLE', '')
    UPDATES_TABLE = os.environ.get('UPDATES_TABLE', '')
    TEST_LOGS_TABLE = os.environ.get('TEST_LOGS_TABLE', '')
    BUG_REPORTS_TABLE = os.environ.get('BUG_REPORTS_TABLE', '')
    STATUSES_TABLE = os.environ.get('STATUSES_TABLE', '')
    USER_TOKENS_TABLE = os.environ.get('USER_TOKENS_TABLE', '')

    # SQS Queues
    NOTIFICATIONS_QUEUE_URL = os.environ.get('NOTIFICATIONS_QUEUE_URL', '')

    # Optimistic concurrency: how many times a mutation is re-run after a version conflict
    MAX_MUTATION_ATTEMPTS = int(os.environ.get('MAX_MUTATION_ATTEMPTS', '3'))

    # Quotes
    DEFAULT_QUOTE_CURRENCY = os.environ.get('DEFAULT_QUOTE_CURRENCY', 'USD')


config = Config()

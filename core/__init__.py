"""
Core utilities and configuration for the govdata sync service.

Modules:
    config: Application configuration and environment variable management
    database: Database engine and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.database import get_session
    from core.exceptions import DatasetValidationError, NetworkError
    from core.logging import setup_logging
"""

__all__ = [
    "settings",
    "get_session",
    "setup_logging",
    # Exceptions
    "SyncException",
    "ExtractionError",
    "APIExtractionError",
    "NetworkError",
    "UpstreamHTTPError",
    "LoadError",
    "UpsertError",
    "MetadataError",
    "LinkError",
    "DatasetValidationError",
    "RegistryError",
    "RetryableError",
    "NonRetryableError",
]

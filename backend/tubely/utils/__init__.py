"""
Utilities Package for the Tubely backend.

Modules:
--------
file_validator:
    Media type parsing and libmagic content sniffing for uploads.

logger:
    Structured logging configuration including:
    - JSONFormatter for structured log output
    - StandardFormatter for human-readable development logs
    - setup_logging for application-wide configuration
    - Uvicorn integration and third-party logger verbosity control
    - ContextLoggerAdapter / add_log_context for request-scoped fields
"""

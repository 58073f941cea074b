"""
Physiognomy Scanner - an AI face reading service.

This package contains the complete application:
- core: Framework-agnostic scan logic
- infrastructure: External service integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"

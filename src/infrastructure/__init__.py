"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- anthropic: Claude API client
- storage: Object storage (S3)

These wrappers translate between external formats and our domain models.
"""

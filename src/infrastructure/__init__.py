"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- mongo: Document database persistence (users, videos, comments)
- storage: Object storage (R2/S3)

These wrappers translate between external formats and our domain models.
"""

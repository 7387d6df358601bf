"""
Core infrastructure services for the Tubely backend application.

This package contains the foundational infrastructure components:
- auth: Bearer token extraction and JWT validation
- database: MongoDB async client and the video metadata store
- errors: Error taxonomy mapped to HTTP outcomes
- storage: S3-compatible storage client (uploads, presigned URLs)
"""

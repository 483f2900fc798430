"""Infrastructure layer for photos app.

This package contains integrations with external systems:
- S3 storage backend for payload chunks
- EXIF reading (Pillow)
- Place directories and great-circle math
- Object identifier encoding

Keep infrastructure concerns separate from business logic.
"""

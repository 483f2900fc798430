"""Business logic layer for photos app.

This package contains the photo store operations:
- Chunked payload storage with its metadata catalog
- Place location index and nearest-place lookups
- Photo ingest, update, retrieval and deletion

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""

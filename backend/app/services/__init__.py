"""
Services module for the ClipCast backend application.

This package holds the upload pipeline components, leaf to root:

- staging_service: Private staged files with guaranteed release
- probe_service: ffprobe-based aspect-ratio classification
- storage_service: S3-compatible object storage (AWS S3 or MinIO)
- publish_service: Local thumbnail publishing and S3 video publishing
- record_service: Video record reads and asset reference updates
- upload_service: Orchestrator composing the pipeline

All services are async and are wired together through FastAPI's dependency
system in app.api.v1.upload.
"""

"""
ClipCast Backend Application Package

FastAPI service that attaches uploaded media to existing video records:

- Thumbnail uploads, published to a local asset directory
- Video uploads, classified by aspect ratio with ffprobe and published to S3
- Ownership checks and guaranteed cleanup of staged files

Package Structure:
- api/: REST API endpoints organized by version (v1)
- core/: Core infrastructure (auth, database, exceptions)
- models/: Pydantic data models
- services/: Upload pipeline components
- utils/: Validation and logging helpers
"""

__version__ = "1.0.0"
__app_name__ = "ClipCast"

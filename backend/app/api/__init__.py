"""
ClipCast API Package.

Endpoints are versioned by URL prefix:
    - v1/: Upload and video record endpoints, mounted under /api/v1
"""

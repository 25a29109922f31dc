"""
Core infrastructure for the ClipCast backend application.

- auth: Bearer token issuing and validation, caller identity dependency
- database: MongoDB async client (Motor) for the video record store
- exceptions: Upload pipeline error taxonomy with HTTP status mapping
"""

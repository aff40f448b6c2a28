"""
Ebookshelf Backend: Middleware Package
========================================

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    - Request ID runs first so every log line of the request can carry it.
    - Logging measures the full duration and logs the final status code.
"""

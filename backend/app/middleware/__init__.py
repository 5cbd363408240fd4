# Middleware package init
"""
Persons API — Middleware Package
==================================

Middleware Chain (order matters!):
    Request → [HTTPS redirect] → [Request ID] → [Logging] → [CORS] → Route Handler

    1. HTTPS redirect (optional): bounce plain-HTTP requests before any work
    2. Request ID: correlation ID for logs and error bodies
    3. Logging: method, path, status, duration with the request ID
    4. CORS: FastAPI's CORSMiddleware (handles preflight)
"""

"""Logging, access logs and process-fatal handlers for the diagnostic server.

structlog renders every record (ours, uvicorn's, the crash logger's) as one JSON
line; request context travels through structlog contextvars.
"""

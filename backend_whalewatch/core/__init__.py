"""
Core utilities: shared error types and cross-cutting concerns.

Used by the gateway clients, job store, background worker, and API server.
"""

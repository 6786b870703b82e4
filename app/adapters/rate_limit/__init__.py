"""Rate limiting adapters.

A small abstraction layer so the HTTP layer works the same against the shared
Redis store or the per-process fallback map.
"""

"""
Domain layer containing core business logic and domain services.

Submodules:
- live: Live streaming domain logic (signaling sessions, stream records).
"""

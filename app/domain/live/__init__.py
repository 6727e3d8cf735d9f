"""
Live streaming domain logic.

Includes:
- signaling: In-memory session registry, relay and event dispatch.
- stream: Vendor livestream records and their lifecycle.
"""

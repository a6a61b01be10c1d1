"""
FastAPI surface for community-pulse.

- GET /sources, /sources/{id}, /sources/{id}/history, /sources/{id}/voice
- POST /sources/refresh, POST /events
- GET /stats, /voice, /health
- WS /ws/updates
"""

from community_pulse.api.app import create_app

__all__ = ["create_app"]

"""
Social layer.

Responsibilities:
- Track follow requests, accepted follows and blocks between users.
- Gate read-only access to another user's favorites.
- Deliver notifications and build the timeline of followed users.
"""

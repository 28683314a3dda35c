"""
Recommendation chat.

Responsibilities:
- Keep each user's chat histories, capped per user.
- Turn a chat message into picks from the user's own favorites.
"""

"""
Share links.

Responsibilities:
- Issue expiring, read-only links to a user's favorites.
- Snapshot the owner's active filters at creation time.
"""

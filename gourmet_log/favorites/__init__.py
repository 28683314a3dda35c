"""
Favorites layer.

Responsibilities:
- Persist each user's saved restaurants and their annotations.
- Derive the filtered, sorted list a viewer renders.
- Patch the rendered list optimistically while edits are confirmed.
"""

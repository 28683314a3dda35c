"""
Administration helpers (super admin only).
"""

"""
VidShare API.

Backend for a small video-sharing site: accounts, admin video uploads
to object storage, a public feed, and comments.
"""

__version__ = "0.1.0"

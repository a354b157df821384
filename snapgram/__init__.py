"""
Snapgram data-access package.

This package wraps a hosted backend platform (accounts, documents and
file storage) behind small client abstractions, and exposes the app's
feed, search, post and profile operations to a FastAPI front end.
"""


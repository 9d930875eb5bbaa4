"""Posts: authoring, likes, comments and tags."""

from .service import PostService

__all__ = ["PostService"]

"""Social graph domain: profiles and follow edges."""

from .service import SocialService

__all__ = ["SocialService"]

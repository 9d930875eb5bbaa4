"""Domain models for users and follow edges."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional


@dataclass(slots=True)
class UserProfile:
	id: int
	username: str
	display_name: Optional[str]
	profile_image: Optional[str] = None
	bio: Optional[str] = None
	theme_preference: str = "light"
	created_at: Optional[datetime] = None

	@classmethod
	def from_record(cls, row: Mapping[str, Any]) -> "UserProfile":
		return cls(
			id=int(row["id"]),
			username=str(row["username"]),
			display_name=row.get("display_name"),
			profile_image=row.get("profile_image"),
			bio=row.get("bio"),
			theme_preference=row.get("theme_preference") or "light",
			created_at=row.get("created_at"),
		)

	def public_fields(self) -> dict:
		return {
			"username": self.username,
			"display_name": self.display_name,
			"profile_image": self.profile_image,
		}


@dataclass(slots=True)
class ProfileStats:
	followers_count: int = 0
	following_count: int = 0
	posts_count: int = 0

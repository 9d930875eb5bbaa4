"""Cursor state for one viewer's feed session."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Set


class FeedSource(str, Enum):
	OWN = "own"
	FOLLOWING = "following"
	GLOBAL = "global"


PRIORITY = (FeedSource.OWN, FeedSource.FOLLOWING, FeedSource.GLOBAL)


@dataclass
class SourceCursor:
	offset: int = 0
	exhausted: bool = False

	def advance(self, requested: int, received: int) -> None:
		self.offset += received
		if received < requested:
			self.exhausted = True


def _fresh_cursors() -> Dict[FeedSource, SourceCursor]:
	return {source: SourceCursor() for source in PRIORITY}


@dataclass
class FeedPageState:
	cursors: Dict[FeedSource, SourceCursor] = field(default_factory=_fresh_cursors)
	seen: Set[int] = field(default_factory=set)
	pages_served: int = 0

	@property
	def has_more(self) -> bool:
		return any(not cursor.exhausted for cursor in self.cursors.values())

	def to_json(self) -> str:
		return json.dumps(
			{
				"cursors": {
					source.value: {"offset": cursor.offset, "exhausted": cursor.exhausted}
					for source, cursor in self.cursors.items()
				},
				"seen": sorted(self.seen),
				"pages_served": self.pages_served,
			}
		)

	@classmethod
	def from_json(cls, raw: str) -> "FeedPageState":
		data = json.loads(raw)
		cursors = _fresh_cursors()
		for key, value in (data.get("cursors") or {}).items():
			cursors[FeedSource(key)] = SourceCursor(
				offset=int(value.get("offset", 0)),
				exhausted=bool(value.get("exhausted", False)),
			)
		return cls(
			cursors=cursors,
			seen={int(item) for item in data.get("seen") or []},
			pages_served=int(data.get("pages_served", 0)),
		)

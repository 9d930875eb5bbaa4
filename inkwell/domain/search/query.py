"""Query builder for post listings and relevance-ranked search.

Predicates accumulate as SQL fragments that only ever reference bound
placeholders; user text travels exclusively through the parallel parameter
list, so the statement shape depends on which filters are present and never
on what they contain.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Tuple


class SearchIntent(str, Enum):
	TITLE = "title"
	AUTHOR = "author"
	COMBINED = "combined"
	NONE = "none"


# (sql expression, record attribute, ts_rank weight class)
INTENT_FIELDS: dict[SearchIntent, Tuple[Tuple[str, str, str], ...]] = {
	SearchIntent.TITLE: (
		("p.title", "title", "A"),
		("p.content", "content", "C"),
	),
	SearchIntent.AUTHOR: (
		("u.display_name", "display_name", "A"),
		("u.username", "username", "B"),
	),
	SearchIntent.COMBINED: (
		("p.title", "title", "A"),
		("u.display_name", "display_name", "B"),
		("u.username", "username", "B"),
		("p.content", "content", "C"),
	),
}

TEXT_SEARCH_CONFIG = "english"
SUBSTRING_BONUS = 1.0

_POST_COLUMNS = """
	p.id, p.user_id, p.title, p.content, p.tags, p.is_published, p.created_at, p.updated_at,
	u.username, u.display_name, u.profile_image,
	(SELECT COUNT(*) FROM likes l WHERE l.post_id = p.id) AS likes_count,
	(SELECT COUNT(*) FROM comments c WHERE c.post_id = p.id) AS comments_count"""


def _clean(value: Optional[str]) -> Optional[str]:
	if value is None:
		return None
	text = value.strip()
	return text or None


def like_pattern(text: str) -> str:
	"""Wrap text for a case-insensitive contains match, escaping LIKE wildcards."""
	escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
	return f"%{escaped}%"


@dataclass(frozen=True, slots=True)
class SearchCriteria:
	intent: SearchIntent = SearchIntent.NONE
	text: Optional[str] = None
	tag: Optional[str] = None
	page: int = 1
	limit: int = 10

	@property
	def offset(self) -> int:
		return (max(self.page, 1) - 1) * self.limit

	@classmethod
	def resolve(
		cls,
		*,
		title: Optional[str] = None,
		author: Optional[str] = None,
		search: Optional[str] = None,
		tag: Optional[str] = None,
		page: int = 1,
		limit: int = 10,
	) -> "SearchCriteria":
		"""Pick the ranking mode from request intent: title, then author, then generic."""
		title, author, search = _clean(title), _clean(author), _clean(search)
		if title:
			intent, text = SearchIntent.TITLE, title
		elif author:
			intent, text = SearchIntent.AUTHOR, author
		elif search:
			intent, text = SearchIntent.COMBINED, search
		else:
			intent, text = SearchIntent.NONE, None
		return cls(intent=intent, text=text, tag=_clean(tag), page=max(page, 1), limit=limit)


class PostSearchQuery:
	"""Accumulates typed predicate clauses and the ordered parameters they bind."""

	def __init__(self, viewer_id: Optional[int]) -> None:
		self._params: List[Any] = []
		self._predicates: List[str] = ["p.is_published = true"]
		self._score: Optional[str] = None
		self._limit: Optional[str] = None
		self._offset: Optional[str] = None
		self._viewer = self.bind(viewer_id)

	@property
	def params(self) -> List[Any]:
		return list(self._params)

	def bind(self, value: Any) -> str:
		self._params.append(value)
		return f"${len(self._params)}"

	def where(self, clause: str) -> "PostSearchQuery":
		self._predicates.append(clause)
		return self

	def match(self, intent: SearchIntent, text: str) -> "PostSearchQuery":
		fields = INTENT_FIELDS[intent]
		pattern = self.bind(like_pattern(text))
		query = self.bind(text)
		document = "concat_ws(' ', " + ", ".join(expr for expr, _, _ in fields) + ")"
		vector = " || ".join(
			f"setweight(to_tsvector('{TEXT_SEARCH_CONFIG}', coalesce({expr}, '')), '{weight}')"
			for expr, _, weight in fields
		)
		tsquery = f"plainto_tsquery('{TEXT_SEARCH_CONFIG}', {query})"
		contains = f"{document} ILIKE {pattern} ESCAPE '\\'"
		self.where(f"({contains} OR ({vector}) @@ {tsquery})")
		self._score = (
			f"(ts_rank({vector}, {tsquery})::float8"
			f" + CASE WHEN {contains} THEN {SUBSTRING_BONUS}::float8 ELSE 0::float8 END)"
		)
		return self

	def tagged(self, tag: str) -> "PostSearchQuery":
		return self.where(f"{self.bind(tag)} = ANY(p.tags)")

	def paginate(self, *, limit: int, offset: int) -> "PostSearchQuery":
		self._limit = self.bind(limit)
		self._offset = self.bind(offset)
		return self

	def build(self) -> Tuple[str, List[Any]]:
		score = self._score or "NULL::float8"
		order = "score DESC, p.created_at DESC" if self._score else "p.created_at DESC"
		sql = (
			f"SELECT {_POST_COLUMNS},\n"
			f"\tEXISTS(SELECT 1 FROM likes l WHERE l.post_id = p.id AND l.user_id = {self._viewer}) AS is_liked,\n"
			f"\t{score} AS score\n"
			"FROM posts p\n"
			"JOIN users u ON u.id = p.user_id\n"
			"WHERE " + "\n\tAND ".join(self._predicates) + "\n"
			f"ORDER BY {order}"
		)
		if self._limit is not None:
			sql += f"\nLIMIT {self._limit} OFFSET {self._offset}"
		return sql, self.params

	@classmethod
	def from_criteria(cls, criteria: SearchCriteria, viewer_id: Optional[int]) -> "PostSearchQuery":
		builder = cls(viewer_id)
		if criteria.intent is not SearchIntent.NONE and criteria.text:
			builder.match(criteria.intent, criteria.text)
		if criteria.tag:
			builder.tagged(criteria.tag)
		return builder.paginate(limit=criteria.limit, offset=criteria.offset)

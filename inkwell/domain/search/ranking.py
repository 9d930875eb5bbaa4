"""In-process relevance scoring used by the memory store.

Mirrors the Postgres ranking closely enough for tests: a weighted token
overlap stands in for ``ts_rank`` and the same substring bonus is added.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence, Tuple

from .query import SUBSTRING_BONUS

# ts_rank's default weights for classes A, B, C, D.
WEIGHTS = {"A": 1.0, "B": 0.4, "C": 0.2, "D": 0.1}

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def tokenize(text: Optional[str]) -> list[str]:
	return _TOKEN_RE.findall((text or "").lower())


def _relevance(fields: Sequence[Tuple[Optional[str], str]], tokens: Iterable[str]) -> float:
	wanted = set(tokens)
	if not wanted:
		return 0.0
	total = 0.0
	for value, weight in fields:
		present = wanted.intersection(tokenize(value))
		total += WEIGHTS[weight] * len(present) / len(wanted)
	# ts_rank stays below 1 for realistic documents; keep the bonus dominant.
	return min(total, 0.99)


def score(fields: Sequence[Tuple[Optional[str], str]], query: str) -> Optional[float]:
	"""Return the relevance score, or None when neither predicate matches."""
	document = " ".join(value for value, _ in fields if value).lower()
	contains = query.lower() in document
	relevance = _relevance(fields, tokenize(query))
	if not contains and relevance == 0.0:
		return None
	return relevance + (SUBSTRING_BONUS if contains else 0.0)

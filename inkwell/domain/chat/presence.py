"""Which users currently hold a live real-time connection."""

from __future__ import annotations

from typing import Dict, List, Optional

from inkwell.obs import metrics as obs_metrics


class PresenceRegistry:
	"""Maps a user id to the sid of its most recent connection.

	One instance per server process, passed to the session handler. A later
	connection for the same user replaces the earlier mapping, and
	``unregister`` removes the mapping whichever connection asks.
	"""

	def __init__(self) -> None:
		self._connections: Dict[int, str] = {}

	def register(self, user_id: int, sid: str) -> None:
		self._connections[user_id] = sid
		obs_metrics.set_presence_online(len(self._connections))

	def unregister(self, user_id: int) -> None:
		if self._connections.pop(user_id, None) is not None:
			obs_metrics.set_presence_online(len(self._connections))

	def lookup(self, user_id: int) -> Optional[str]:
		return self._connections.get(user_id)

	def is_online(self, user_id: int) -> bool:
		return user_id in self._connections

	def online_user_ids(self) -> List[int]:
		return list(self._connections)

	def __len__(self) -> int:
		return len(self._connections)

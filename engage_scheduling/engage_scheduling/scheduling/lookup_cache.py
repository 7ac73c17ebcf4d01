"""
Name Lookup Cache

Bounded, time-expiring mapping of human names (e.g. a service title given by
the AI agent) to record ids, keyed by organization. One instance is owned by
whoever builds the action handler and is passed in explicitly.
"""

import threading
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple


DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ENTRIES = 5000


def normalize_name(name: str) -> str:
	return " ".join((name or "").split()).lower()


class NameLookupCache:
	"""
	Caché en memoria de proceso con TTL y límite de entradas.

	Al superar max_entries se descarta la entrada usada hace más tiempo.

	Args:
		ttl_seconds: segundos de validez de cada entrada
		max_entries: tamaño máximo
		clock: callable que devuelve segundos monotónicos
	"""

	def __init__(
		self,
		ttl_seconds: int = DEFAULT_TTL_SECONDS,
		max_entries: int = DEFAULT_MAX_ENTRIES,
		clock: Optional[Callable[[], float]] = None
	):
		self.ttl_seconds = max(1, int(ttl_seconds))
		self.max_entries = max(1, int(max_entries))
		self._clock = clock or time.monotonic
		self._entries = OrderedDict()
		self._lock = threading.Lock()

	@staticmethod
	def make_key(organization_id: str, kind: str, name: str) -> Tuple[str, str, str]:
		return (organization_id or "", kind, normalize_name(name))

	def get(self, organization_id: str, kind: str, name: str) -> Optional[str]:
		key = self.make_key(organization_id, kind, name)
		with self._lock:
			row = self._entries.get(key)
			if row is None:
				return None
			value, expires_at = row
			if expires_at <= self._clock():
				del self._entries[key]
				return None
			self._entries.move_to_end(key)
			return value

	def set(self, organization_id: str, kind: str, name: str, value: str) -> None:
		key = self.make_key(organization_id, kind, name)
		with self._lock:
			self._entries[key] = (value, self._clock() + self.ttl_seconds)
			self._entries.move_to_end(key)
			while len(self._entries) > self.max_entries:
				self._entries.popitem(last=False)

	def invalidate(self, organization_id: str) -> int:
		"""Descarta todas las entradas de una organización."""
		with self._lock:
			keys = [k for k in self._entries if k[0] == (organization_id or "")]
			for k in keys:
				del self._entries[k]
			return len(keys)

	def __len__(self) -> int:
		with self._lock:
			return len(self._entries)

	def resolve(
		self,
		organization_id: str,
		kind: str,
		name: str,
		loader: Callable[[], Optional[str]]
	) -> Optional[str]:
		"""
		Devuelve el id cacheado o lo carga con ``loader``.

		Las ausencias (loader devuelve None) no se cachean.
		"""
		value = self.get(organization_id, kind, name)
		if value is not None:
			return value

		value = loader()
		if value is not None:
			self.set(organization_id, kind, name, value)
		return value

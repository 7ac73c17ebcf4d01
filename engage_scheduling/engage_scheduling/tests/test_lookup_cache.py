"""
Tests for scheduling/lookup_cache.py
"""

import unittest

from engage_scheduling.engage_scheduling.scheduling.lookup_cache import NameLookupCache


class FakeClock:
	def __init__(self):
		self.now = 1000.0

	def __call__(self):
		return self.now


class TestNameLookupCache(unittest.TestCase):

	def setUp(self):
		self.clock = FakeClock()
		self.cache = NameLookupCache(ttl_seconds=60, max_entries=3, clock=self.clock)

	def test_names_are_normalized(self):
		self.cache.set("ORG-1", "service", "Corte  Masculino", "SRV-1")
		self.assertEqual(self.cache.get("ORG-1", "service", "corte masculino "), "SRV-1")

	def test_keyed_by_organization(self):
		self.cache.set("ORG-1", "service", "consulta", "SRV-1")
		self.assertIsNone(self.cache.get("ORG-2", "service", "consulta"))

	def test_entries_expire(self):
		self.cache.set("ORG-1", "service", "consulta", "SRV-1")
		self.clock.now += 59
		self.assertEqual(self.cache.get("ORG-1", "service", "consulta"), "SRV-1")
		self.clock.now += 1
		self.assertIsNone(self.cache.get("ORG-1", "service", "consulta"))
		self.assertEqual(len(self.cache), 0)

	def test_bounded_evicts_least_recently_used(self):
		for name in ("a", "b", "c"):
			self.cache.set("ORG-1", "service", name, name.upper())
		self.cache.get("ORG-1", "service", "a")
		self.cache.set("ORG-1", "service", "d", "D")

		self.assertEqual(len(self.cache), 3)
		self.assertIsNone(self.cache.get("ORG-1", "service", "b"))
		self.assertEqual(self.cache.get("ORG-1", "service", "a"), "A")

	def test_invalidate_organization(self):
		self.cache.set("ORG-1", "service", "a", "A")
		self.cache.set("ORG-1", "service", "b", "B")
		self.cache.set("ORG-2", "service", "a", "X")

		self.assertEqual(self.cache.invalidate("ORG-1"), 2)
		self.assertEqual(self.cache.get("ORG-2", "service", "a"), "X")

	def test_resolve_does_not_cache_misses(self):
		calls = []

		def loader():
			calls.append(1)
			return None

		self.assertIsNone(self.cache.resolve("ORG-1", "service", "nope", loader))
		self.assertIsNone(self.cache.resolve("ORG-1", "service", "nope", loader))
		self.assertEqual(len(calls), 2)

	def test_instances_do_not_share_state(self):
		other = NameLookupCache(clock=self.clock)
		self.cache.set("ORG-1", "service", "a", "A")
		self.assertIsNone(other.get("ORG-1", "service", "a"))


def run_tests():
	"""Run all tests in this module."""
	unittest.main()

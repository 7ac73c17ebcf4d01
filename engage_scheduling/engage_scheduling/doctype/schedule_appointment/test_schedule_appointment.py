# Copyright (c) 2026, Sebastian Ortiz Valencia and Contributors
# See license.txt

"""
Tests for Schedule Appointment DocType

Tests status transitions, immutability and the Frappe repository booking path.
"""

import unittest

try:
	import frappe
	from frappe.tests.utils import FrappeTestCase
except ImportError:
	raise unittest.SkipTest("frappe is not installed; run with bench run-tests")

from engage_scheduling.engage_scheduling.scheduling.booking import BookingEngine
from engage_scheduling.engage_scheduling.scheduling.exceptions import SlotUnavailable
from engage_scheduling.engage_scheduling.scheduling.frappe_adapters import FrappeSchedulingRepository


MONDAY = "2025-03-10"


class TestScheduleAppointment(FrappeTestCase):
	"""Tests for Schedule Appointment DocType."""

	def setUp(self):
		"""Set up a schedule, a service and a provider open on Mondays."""
		self.schedule = frappe.get_doc({
			"doctype": "Booking Schedule",
			"schedule_title": "Test Schedule Appointment",
			"timezone": "America/Sao_Paulo",
			"default_slot_duration": 30,
			"is_active": 1
		}).insert(ignore_permissions=True)

		self.service = frappe.get_doc({
			"doctype": "Schedule Service",
			"schedule": self.schedule.name,
			"title": "Consulta",
			"duration": 30,
			"capacity": 1
		}).insert(ignore_permissions=True)

		self.provider = frappe.get_doc({
			"doctype": "Schedule Provider",
			"schedule": self.schedule.name,
			"provider_name": "Ana",
			"is_active": 1
		}).insert(ignore_permissions=True)

		frappe.get_doc({
			"doctype": "Provider Availability",
			"provider": self.provider.name,
			"weekday": "Monday",
			"start_time": "09:00:00",
			"end_time": "12:00:00"
		}).insert(ignore_permissions=True)

		self.engine = BookingEngine(FrappeSchedulingRepository())

	def _book(self, time="10:00", customer="C-1"):
		return self.engine.create_appointment({
			"schedule_id": self.schedule.name,
			"customer_id": customer,
			"date": MONDAY,
			"time": time,
			"service_id": self.service.name,
		})["data"]["appointment"]

	def test_create_through_repository(self):
		appointment = self._book()
		doc = frappe.get_doc("Schedule Appointment", appointment["id"])

		self.assertEqual(doc.status, "scheduled")
		self.assertEqual(doc.provider, self.provider.name)
		self.assertEqual(frappe.parse_json(doc.metadata)["created_via"], "api")

	def test_double_booking_rejected(self):
		self._book()
		with self.assertRaises(SlotUnavailable):
			self._book(customer="C-2")

	def test_status_transitions(self):
		doc = frappe.get_doc("Schedule Appointment", self._book()["id"])

		doc.status = "confirmed"
		doc.save(ignore_permissions=True)

		doc.status = "scheduled"
		with self.assertRaises(frappe.ValidationError):
			doc.save(ignore_permissions=True)

	def test_canceled_is_terminal(self):
		appointment = self._book()
		self.engine.cancel_appointment({"customer_id": "C-1", "appointment_id": appointment["id"]})

		doc = frappe.get_doc("Schedule Appointment", appointment["id"])
		self.assertEqual(doc.status, "canceled")

		doc.status = "scheduled"
		with self.assertRaises(frappe.ValidationError):
			doc.save(ignore_permissions=True)

	def test_booking_fields_immutable(self):
		doc = frappe.get_doc("Schedule Appointment", self._book()["id"])
		doc.start_time = "11:00:00"
		doc.end_time = "11:30:00"
		with self.assertRaises(frappe.ValidationError):
			doc.save(ignore_permissions=True)

	def test_start_before_end(self):
		with self.assertRaises(frappe.ValidationError):
			frappe.get_doc({
				"doctype": "Schedule Appointment",
				"schedule": self.schedule.name,
				"service": self.service.name,
				"provider": self.provider.name,
				"customer": "C-1",
				"date": MONDAY,
				"start_time": "10:00:00",
				"end_time": "10:00:00",
				"time_slot": "10:00"
			}).insert(ignore_permissions=True)

	def tearDown(self):
		"""Clean up after tests."""
		frappe.db.rollback()


def run_tests():
	"""Run all tests in this module."""
	unittest.main()

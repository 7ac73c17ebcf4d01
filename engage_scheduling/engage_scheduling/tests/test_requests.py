"""
Tests for scheduling/requests.py and scheduling/validators.py

Tests boundary validation of loose argument dicts.
"""

import unittest

from engage_scheduling.engage_scheduling.scheduling.exceptions import InvalidArgument, InvalidTimeFormat
from engage_scheduling.engage_scheduling.scheduling.requests import (
	CancelAppointmentRequest,
	CheckAppointmentRequest,
	CheckAvailabilityRequest,
	CreateAppointmentRequest,
)
from engage_scheduling.engage_scheduling.scheduling.validators import sanitize_string, validate_docname


class TestRequests(unittest.TestCase):

	def test_check_availability_from_args(self):
		request = CheckAvailabilityRequest.from_args({
			"schedule_id": " SCH-1 ",
			"date": "2025-03-10",
			"service_id": "SRV-1",
			"time": "9:00:00",
		})
		self.assertEqual(request.schedule_id, "SCH-1")
		self.assertEqual(request.time, "09:00")

	def test_check_availability_time_optional(self):
		request = CheckAvailabilityRequest.from_args({"schedule_id": "SCH-1", "date": "2025-03-10", "service_id": "SRV-1"})
		self.assertIsNone(request.time)

	def test_missing_field_reports_its_name(self):
		with self.assertRaises(InvalidArgument) as ctx:
			CheckAvailabilityRequest.from_args({"schedule_id": "SCH-1", "date": "2025-03-10"})
		self.assertEqual(ctx.exception.field, "service_id")

	def test_malformed_date(self):
		with self.assertRaises(InvalidArgument) as ctx:
			CreateAppointmentRequest.from_args({
				"schedule_id": "SCH-1", "customer_id": "C-1", "date": "2025-13-01",
				"time": "10:00", "service_id": "SRV-1",
			})
		self.assertEqual(ctx.exception.field, "date")

	def test_malformed_time(self):
		with self.assertRaises(InvalidTimeFormat):
			CreateAppointmentRequest.from_args({
				"schedule_id": "SCH-1", "customer_id": "C-1", "date": "2025-03-10",
				"time": "25:00", "service_id": "SRV-1",
			})

	def test_create_sanitizes_notes(self):
		request = CreateAppointmentRequest.from_args({
			"schedule_id": "SCH-1", "customer_id": "C-1", "date": "2025-03-10",
			"time": "10:00", "service_id": "SRV-1", "notes": "  first visit\x00 ",
		})
		self.assertEqual(request.notes, "first visit")
		self.assertEqual(request.created_via, "api")

	def test_create_optional_provider_and_conversation(self):
		request = CreateAppointmentRequest.from_args({
			"schedule_id": "SCH-1", "customer_id": "C-1", "date": "2025-03-10",
			"time": "10:00", "service_id": "SRV-1", "provider_id": " PRV-2 ",
			"chat_id": "CHAT-1", "organization_id": "ORG-1",
		})
		self.assertEqual(request.provider_id, "PRV-2")
		self.assertEqual(request.chat_id, "CHAT-1")
		self.assertEqual(request.organization_id, "ORG-1")

	def test_create_rejects_malformed_provider_id(self):
		with self.assertRaises(InvalidArgument) as ctx:
			CreateAppointmentRequest.from_args({
				"schedule_id": "SCH-1", "customer_id": "C-1", "date": "2025-03-10",
				"time": "10:00", "service_id": "SRV-1", "provider_id": "<script>alert(1)</script>",
			})
		self.assertEqual(ctx.exception.field, "provider_id")

	def test_check_appointment_blank_optional_ids(self):
		request = CheckAppointmentRequest.from_args({"customer_id": "C-1", "appointment_id": "", "schedule_id": None})
		self.assertIsNone(request.appointment_id)
		self.assertIsNone(request.schedule_id)

	def test_cancel_requires_one_selector(self):
		with self.assertRaises(InvalidArgument):
			CancelAppointmentRequest.from_args({"customer_id": "C-1"})
		with self.assertRaises(InvalidArgument):
			CancelAppointmentRequest.from_args({"customer_id": "C-1", "appointment_id": "APT-1", "date": "2025-03-10"})

	def test_cancel_by_date(self):
		request = CancelAppointmentRequest.from_args({"customer_id": "C-1", "date": "2025-03-10"})
		self.assertEqual(request.date, "2025-03-10")
		self.assertIsNone(request.appointment_id)


class TestValidators(unittest.TestCase):

	def test_docname_rejects_injection(self):
		for value in ("APT-1; DROP TABLE x", "<script>", "a--b"):
			with self.assertRaises(InvalidArgument):
				validate_docname(value)

	def test_docname_too_long(self):
		with self.assertRaises(InvalidArgument):
			validate_docname("x" * 141)

	def test_sanitize_truncates(self):
		self.assertEqual(sanitize_string("abcdef", max_length=3), "abc")
		self.assertIsNone(sanitize_string(""))


def run_tests():
	"""Run all tests in this module."""
	unittest.main()

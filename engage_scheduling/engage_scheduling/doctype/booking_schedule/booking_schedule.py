# Copyright (c) 2026, Sebastian Ortiz Valencia and contributors
# For license information, please see license.txt

"""
Booking Schedule DocType

Calendario reservable de una organización: timezone y granularidad de slots.
"""

import frappe
from frappe import _
from frappe.model.document import Document

from engage_scheduling.engage_scheduling.scheduling.exceptions import InvalidArgument
from engage_scheduling.engage_scheduling.scheduling.models import DEFAULT_SLOT_GRANULARITY, DEFAULT_TIMEZONE
from engage_scheduling.engage_scheduling.scheduling.time_utils import get_timezone


class BookingSchedule(Document):
	def validate(self) -> None:
		self._validate_timezone()
		self._validate_slot_duration()

	def _validate_timezone(self) -> None:
		"""Valida que la timezone sea un nombre IANA conocido."""
		if not self.timezone:
			self.timezone = DEFAULT_TIMEZONE

		try:
			get_timezone(self.timezone)
		except InvalidArgument:
			frappe.throw(_("Timezone '{0}' no es válida").format(self.timezone))

	def _validate_slot_duration(self) -> None:
		if not self.default_slot_duration:
			self.default_slot_duration = DEFAULT_SLOT_GRANULARITY

		if self.default_slot_duration <= 0:
			frappe.throw(_("Default Slot Duration debe ser mayor que cero"))

# Copyright (c) 2026, Sebastian Ortiz Valencia and contributors
# For license information, please see license.txt

"""
Provider Availability DocType

Recurring weekly window of a Schedule Provider (weekday, start, end) in the
schedule's wall-clock time.
"""

import frappe
from frappe import _
from frappe.model.document import Document

from engage_scheduling.engage_scheduling.scheduling.time_utils import WEEKDAY_NAMES, time_to_minutes, to_clock


class ProviderAvailability(Document):
	"""
	Validations:
	- weekday válido
	- start_time < end_time
	- sin solapamiento con otras ventanas del proveedor ese día
	"""

	def validate(self) -> None:
		if self.weekday not in WEEKDAY_NAMES:
			frappe.throw(_("Weekday '{0}' no es válido").format(self.weekday))

		if not self.start_time or not self.end_time:
			frappe.throw(_("Start Time y End Time son requeridos"))

		start = time_to_minutes(to_clock(self.start_time))
		end = time_to_minutes(to_clock(self.end_time))
		if start >= end:
			frappe.throw(_("Start Time debe ser menor que End Time"))

		self._check_overlapping_windows(start, end)

	def _check_overlapping_windows(self, start: int, end: int) -> None:
		existing = frappe.get_all(
			"Provider Availability",
			filters={
				"provider": self.provider,
				"weekday": self.weekday,
				"name": ["!=", self.name or ""]
			},
			fields=["name", "start_time", "end_time"]
		)

		for row in existing:
			row_start = time_to_minutes(to_clock(row.start_time))
			row_end = time_to_minutes(to_clock(row.end_time))
			if start < row_end and end > row_start:
				frappe.throw(
					_("Esta ventana se solapa con {0} ({1}-{2})").format(
						row.name, to_clock(row.start_time), to_clock(row.end_time)
					)
				)

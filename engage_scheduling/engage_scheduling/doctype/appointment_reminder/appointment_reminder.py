# Copyright (c) 2026, Sebastian Ortiz Valencia and contributors
# For license information, please see license.txt

"""
Appointment Reminder DocType

One reminder planned for one appointment. Created and sent by the
scheduled tasks in engage_scheduling.engage_scheduling.scheduling.tasks.
"""

import frappe
from frappe import _
from frappe.model.document import Document

from engage_scheduling.engage_scheduling.scheduling.reminders import REMINDER_STATUSES


class AppointmentReminder(Document):
	def validate(self) -> None:
		if self.status not in REMINDER_STATUSES:
			frappe.throw(_("Status '{0}' no es válido").format(self.status))

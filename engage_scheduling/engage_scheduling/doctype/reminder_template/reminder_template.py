# Copyright (c) 2026, Sebastian Ortiz Valencia and contributors
# For license information, please see license.txt

"""
Reminder Template DocType

Message sent to the customer around an appointment of a Booking Schedule.
before_appointment templates carry one Reminder Setting row per "time
before"; on_confirmation and on_cancellation templates are sent once.
"""

import frappe
from frappe import _
from frappe.model.document import Document

from engage_scheduling.engage_scheduling.scheduling.exceptions import InvalidArgument
from engage_scheduling.engage_scheduling.scheduling.reminders import (
	TRIGGER_BEFORE_APPOINTMENT,
	TRIGGER_TYPES,
	parse_time_before,
	unknown_placeholders,
)


class ReminderTemplate(Document):
	"""
	Validations:
	- trigger_type válido y content obligatorio
	- before_appointment requiere al menos un setting; los demás no llevan
	- time_before parseable y sin repetidos
	- placeholders desconocidos (warning)
	"""

	def validate(self) -> None:
		if self.trigger_type not in TRIGGER_TYPES:
			frappe.throw(_("Trigger Type '{0}' no es válido").format(self.trigger_type))

		if not (self.content or "").strip():
			frappe.throw(_("Content es obligatorio"))

		self._validate_settings()
		self._warn_unknown_placeholders()

	def _validate_settings(self) -> None:
		settings = self.settings or []

		if self.trigger_type != TRIGGER_BEFORE_APPOINTMENT:
			if settings:
				frappe.throw(_("Solo los templates before_appointment llevan Settings"))
			return

		if not settings:
			frappe.throw(_("Agregue al menos un Setting con Time Before"))

		seen = set()
		for row in settings:
			try:
				row.time_before_minutes = parse_time_before(row.time_before)
			except InvalidArgument as e:
				frappe.throw(_("Fila {0}: {1}").format(row.idx, str(e)))

			if row.time_before_minutes in seen:
				frappe.throw(_("Fila {0}: Time Before repetido").format(row.idx))
			seen.add(row.time_before_minutes)

	def _warn_unknown_placeholders(self) -> None:
		unknown = unknown_placeholders(self.content) + unknown_placeholders(self.subject)
		if unknown:
			frappe.msgprint(
				_("Placeholders desconocidos, se enviarán sin reemplazar: {0}").format(
					", ".join(sorted(set(unknown)))
				),
				indicator="orange",
				alert=True
			)

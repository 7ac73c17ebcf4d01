# Copyright (c) 2026, Sebastian Ortiz Valencia and contributors
# For license information, please see license.txt

"""
Schedule Appointment DocType

Appointments are created by the booking engine. After insert only the status
(and the cancellation metadata) may change:
	scheduled -> confirmed -> canceled
	scheduled -> canceled
Canceled is terminal; appointments are never deleted.
"""

import frappe
from frappe import _
from frappe.model.document import Document

from engage_scheduling.engage_scheduling.scheduling.models import (
	APPOINTMENT_STATUSES,
	STATUS_CANCELED,
	STATUS_CONFIRMED,
	STATUS_SCHEDULED,
)
from engage_scheduling.engage_scheduling.scheduling.reminders import STATUS_TRIGGERS
from engage_scheduling.engage_scheduling.scheduling.tasks import create_status_reminders
from engage_scheduling.engage_scheduling.scheduling.time_utils import time_to_minutes, to_clock


ALLOWED_TRANSITIONS = {
	STATUS_SCHEDULED: (STATUS_CONFIRMED, STATUS_CANCELED),
	STATUS_CONFIRMED: (STATUS_CANCELED,),
	STATUS_CANCELED: (),
}

IMMUTABLE_FIELDS = (
	"schedule", "provider", "service", "customer", "date",
	"start_time", "end_time", "time_slot"
)


class ScheduleAppointment(Document):
	def validate(self) -> None:
		"""
		Validación antes de guardar.

		Ejecuta:
		1. Validar status
		2. Validar start_time < end_time
		3. En ediciones: campos inmutables y transiciones de status
		"""
		self._validate_status()
		self._validate_times()

		if not self.is_new():
			self._validate_immutable_fields()
			self._validate_status_transition()

	def on_update(self) -> None:
		"""Confirmar o cancelar crea los recordatorios on_confirmation / on_cancellation."""
		if self.has_value_changed("status") and self.status in STATUS_TRIGGERS:
			create_status_reminders(self.name)

	def on_trash(self) -> None:
		frappe.throw(_("Las citas no se eliminan; cancele la cita en su lugar"))

	def _validate_status(self) -> None:
		if not self.status:
			self.status = STATUS_SCHEDULED

		if self.status not in APPOINTMENT_STATUSES:
			frappe.throw(_("Status '{0}' no es válido").format(self.status))

	def _validate_times(self) -> None:
		if time_to_minutes(to_clock(self.start_time)) >= time_to_minutes(to_clock(self.end_time)):
			frappe.throw(_("Start Time debe ser menor que End Time"))

	def _validate_immutable_fields(self) -> None:
		previous = self.get_doc_before_save()
		if previous is None:
			return

		for fieldname in IMMUTABLE_FIELDS:
			old, new = previous.get(fieldname), self.get(fieldname)
			if fieldname in ("start_time", "end_time"):
				old, new = to_clock(old), to_clock(new)
			if str(old) != str(new):
				frappe.throw(_("{0} no puede modificarse después de crear la cita").format(fieldname))

	def _validate_status_transition(self) -> None:
		previous = self.get_doc_before_save()
		if previous is None or previous.status == self.status:
			return

		if self.status not in ALLOWED_TRANSITIONS.get(previous.status, ()):
			frappe.throw(
				_("Transición de status inválida: {0} -> {1}").format(previous.status, self.status)
			)

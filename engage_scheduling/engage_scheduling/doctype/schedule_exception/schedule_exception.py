# Copyright (c) 2026, Sebastian Ortiz Valencia and contributors
# For license information, please see license.txt

"""
Schedule Exception DocType

Override de disponibilidad para una fecha (feriado, ausencia):
- Sin provider: aplica a todos los proveedores del schedule
- All Day: el proveedor no atiende ese día
- Parcial: se resta el rango start_time-end_time de sus ventanas
"""

import frappe
from frappe import _
from frappe.model.document import Document

from engage_scheduling.engage_scheduling.scheduling.time_utils import time_to_minutes, to_clock


class ScheduleException(Document):
	"""
	Schedule Exception with validations.

	Validations:
	- provider pertenece al schedule
	- parcial requiere start_time < end_time
	- all day limpia el rango horario
	- Warn on overlapping exceptions for same date/provider
	"""

	def validate(self) -> None:
		self._validate_provider()
		self._validate_times()
		self._check_duplicate_exceptions()

	def _validate_provider(self) -> None:
		if not self.provider:
			return

		provider_schedule = frappe.db.get_value("Schedule Provider", self.provider, "schedule")
		if provider_schedule != self.schedule:
			frappe.throw(
				_("Provider {0} no pertenece al schedule {1}").format(self.provider, self.schedule)
			)

	def _validate_times(self) -> None:
		if self.all_day:
			self.start_time = None
			self.end_time = None
			return

		if not self.start_time or not self.end_time:
			frappe.throw(_("Una excepción parcial requiere Start Time y End Time"))

		if time_to_minutes(to_clock(self.start_time)) >= time_to_minutes(to_clock(self.end_time)):
			frappe.throw(
				_("Start Time ({0}) debe ser menor que End Time ({1})").format(
					to_clock(self.start_time), to_clock(self.end_time)
				)
			)

	def _check_duplicate_exceptions(self) -> None:
		"""
		Advierte si ya existe una excepción que se solapa el mismo día.
		No bloquea, solo informa, porque pueden haber múltiples bloqueos parciales.
		"""
		existing = frappe.get_all(
			"Schedule Exception",
			filters={
				"schedule": self.schedule,
				"provider": self.provider or ["is", "not set"],
				"date": self.date,
				"name": ["!=", self.name or ""]
			},
			fields=["name", "all_day", "start_time", "end_time"]
		)

		if not existing:
			return

		if self.all_day:
			frappe.msgprint(
				_("Ya existen {0} excepción(es) en {1}. Esta excepción cerrará todo el día.").format(
					len(existing), self.date
				),
				indicator="orange",
				alert=True
			)
			return

		new_start = time_to_minutes(to_clock(self.start_time))
		new_end = time_to_minutes(to_clock(self.end_time))

		for exc in existing:
			if exc.all_day or not (exc.start_time and exc.end_time):
				continue
			if new_start < time_to_minutes(to_clock(exc.end_time)) and new_end > time_to_minutes(to_clock(exc.start_time)):
				frappe.msgprint(
					_("Esta excepción se solapa con {0} ({1}-{2})").format(
						exc.name, to_clock(exc.start_time), to_clock(exc.end_time)
					),
					indicator="orange",
					alert=True
				)

# Copyright (c) 2026, Sebastian Ortiz Valencia and contributors
# For license information, please see license.txt

"""
Schedule Service DocType

Servicio reservable de un Booking Schedule (duración, capacidad, modo).
"""

import frappe
from frappe import _
from frappe.model.document import Document

from engage_scheduling.engage_scheduling.scheduling.frappe_adapters import FrappeLookupCache


class ScheduleService(Document):
	"""
	Validations:
	- duration > 0
	- capacity >= 1
	- capacity > 1 solo tiene efecto en modo por orden de llegada (warning)
	"""

	def validate(self) -> None:
		if not self.duration or self.duration <= 0:
			frappe.throw(_("Duration debe ser mayor que cero"))

		if not self.capacity or self.capacity < 1:
			frappe.throw(_("Capacity debe ser al menos 1"))

		if self.capacity > 1 and not self.by_arrival_time:
			frappe.msgprint(
				_("Capacity mayor que 1 solo se usa en servicios por orden de llegada"),
				indicator="orange",
				alert=True
			)

	def on_update(self) -> None:
		self._invalidate_lookup_cache()

	def on_trash(self) -> None:
		self._invalidate_lookup_cache()

	def _invalidate_lookup_cache(self) -> None:
		"""El agente busca servicios por título; un cambio invalida la caché."""
		organization = frappe.db.get_value("Booking Schedule", self.schedule, "organization")
		FrappeLookupCache().invalidate(organization or self.schedule)

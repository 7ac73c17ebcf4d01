# Copyright (c) 2026, Sebastian Ortiz Valencia and contributors
# For license information, please see license.txt

"""
Schedule Provider DocType

Staff member attached to a Booking Schedule. An empty services table means
the provider performs every service of the schedule.
"""

import frappe
from frappe import _
from frappe.model.document import Document

from engage_scheduling.engage_scheduling.scheduling.frappe_adapters import FrappeLookupCache


class ScheduleProvider(Document):
	def validate(self) -> None:
		self._validate_services()

	def on_update(self) -> None:
		self._invalidate_lookup_cache()

	def on_trash(self) -> None:
		self._invalidate_lookup_cache()

	def _validate_services(self) -> None:
		"""Valida que los servicios pertenezcan al mismo schedule y no se repitan."""
		seen = set()
		for row in self.services or []:
			if row.service in seen:
				frappe.throw(_("Servicio {0} repetido").format(row.service))
			seen.add(row.service)

			service_schedule = frappe.db.get_value("Schedule Service", row.service, "schedule")
			if service_schedule != self.schedule:
				frappe.throw(
					_("Servicio {0} no pertenece al schedule {1}").format(row.service, self.schedule)
				)

	def _invalidate_lookup_cache(self) -> None:
		"""El agente busca proveedores por nombre; un cambio invalida la caché."""
		organization = frappe.db.get_value("Booking Schedule", self.schedule, "organization")
		FrappeLookupCache().invalidate(organization or self.schedule)

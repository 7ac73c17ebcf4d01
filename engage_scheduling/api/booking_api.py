"""
Booking API Endpoints

Whitelisted functions exposing the scheduling engine over HTTP.
Public endpoints allow guest access with security protections (see security.py):
- Rate limiting by IP address, and by (schedule, customer) on writes
- Honeypot validation for bot detection on writes

Every endpoint answers with the engine envelope:
	{"success", "status", "operation", "message", "data"}
Business failures (slot taken, not found, bad input) and rate
limits come back as envelopes
with ``success: False`` and an ``error`` code, not as HTTP errors.
"""

from typing import Any, Callable, Dict, Optional

import frappe
from frappe import _

from engage_scheduling.engage_scheduling.scheduling.actions import ScheduleActionHandler, error_response
from engage_scheduling.engage_scheduling.scheduling.booking import BookingEngine
from engage_scheduling.engage_scheduling.scheduling.exceptions import RateLimited, SchedulingError
from engage_scheduling.engage_scheduling.scheduling.frappe_adapters import (
	FrappeLookupCache,
	FrappeSchedulingRepository,
)
from engage_scheduling.engage_scheduling.notifications.appointment import FrappeNotifier
from engage_scheduling.api.security import check_honeypot, check_rate_limit


def get_engine() -> BookingEngine:
	"""Motor configurado con el repositorio y el notifier de Frappe."""
	return BookingEngine(
		FrappeSchedulingRepository(),
		notifier=FrappeNotifier(),
		logger=frappe.logger("engage_scheduling"),
	)


def _run(operation: str, call: Callable[[], Dict[str, Any]], write: bool = False) -> Dict[str, Any]:
	"""
	Ejecuta una operación del motor y arma la respuesta.

	Hace commit solo tras una escritura exitosa. Los guards de security.py
	corren dentro de ``call`` para que sus errores también salgan como envelope.
	"""
	try:
		result = call()
	except SchedulingError as e:
		if write:
			frappe.db.rollback()
		if isinstance(e, RateLimited):
			frappe.local.response.http_status_code = 429
		return error_response(operation, e)
	except Exception as e:
		frappe.log_error(f"Error in {operation}: {frappe.get_traceback()}", "Engage Scheduling API")
		frappe.throw(_("Error processing scheduling request: {0}").format(str(e)))

	if write:
		if result.get("success"):
			frappe.db.commit()
		else:
			frappe.db.rollback()
	return result


@frappe.whitelist(allow_guest=True, methods=["GET"])
def check_availability(
	schedule_id: str,
	date: str,
	service_id: str,
	time: Optional[str] = None
) -> Dict[str, Any]:
	"""
	Consulta horarios disponibles de un servicio en una fecha.

	Rate limited: 30 requests per minute per IP.

	Args:
		schedule_id: nombre del Booking Schedule
		date: fecha (YYYY-MM-DD)
		service_id: nombre del Schedule Service
		time: horario a verificar (HH:MM, opcional)

	Example:
		```javascript
		frappe.call({
			method: "engage_scheduling.api.booking_api.check_availability",
			args: {schedule_id: "SCH-0001", date: "2026-03-09", service_id: "SRV-0001"},
			callback: function(r) {
				console.log(r.message.data.available_times);
			}
		});
		```
	"""
	args = {"schedule_id": schedule_id, "date": date, "service_id": service_id, "time": time}

	def call():
		check_rate_limit("check_availability")
		return get_engine().check_availability(args)

	return _run("checkAvailability", call)


@frappe.whitelist(allow_guest=True, methods=["POST"])
def create_appointment(
	schedule_id: str,
	customer_id: str,
	date: str,
	time: str,
	service_id: str,
	notes: Optional[str] = None,
	provider_id: Optional[str] = None,
	honeypot: Optional[str] = None
) -> Dict[str, Any]:
	"""
	Crea una cita.

	Rate limited: 5 requests per minute per IP and 3 every 5 minutes per
	customer in the schedule (write operation). Protected by honeypot field.

	provider_id (opcional) pide un proveedor concreto; si no puede tomar el
	horario la respuesta es slot_unavailable.

	Si el horario ya no está libre la respuesta trae
	``error: "slot_unavailable"`` y ``data.available_times``.
	"""
	args = {
		"schedule_id": schedule_id,
		"customer_id": customer_id,
		"date": date,
		"time": time,
		"service_id": service_id,
		"notes": notes,
		"provider_id": provider_id,
		"created_via": "api",
	}

	def call():
		check_honeypot(honeypot)
		check_rate_limit("create_appointment", schedule_id=schedule_id, customer_id=customer_id)
		return get_engine().create_appointment(args)

	return _run("createAppointment", call, write=True)


@frappe.whitelist(allow_guest=True, methods=["GET"])
def check_appointment(
	customer_id: str,
	appointment_id: Optional[str] = None,
	schedule_id: Optional[str] = None
) -> Dict[str, Any]:
	"""
	Lista las citas activas de un cliente.

	Rate limited: 30 requests per minute per IP.
	"""
	args = {"customer_id": customer_id, "appointment_id": appointment_id, "schedule_id": schedule_id}

	def call():
		check_rate_limit("check_appointment")
		return get_engine().check_appointment(args)

	return _run("checkAppointment", call)


@frappe.whitelist(allow_guest=True, methods=["POST"])
def cancel_appointment(
	customer_id: str,
	appointment_id: Optional[str] = None,
	date: Optional[str] = None,
	schedule_id: Optional[str] = None,
	honeypot: Optional[str] = None
) -> Dict[str, Any]:
	"""
	Cancela una cita por id, o todas las del cliente en una fecha.

	Rate limited: 5 requests per minute per IP and 5 every 5 minutes per
	customer in the schedule (write operation). Protected by honeypot field.
	"""
	args = {
		"customer_id": customer_id,
		"appointment_id": appointment_id,
		"date": date,
		"schedule_id": schedule_id,
		"canceled_via": "api",
	}

	def call():
		check_honeypot(honeypot)
		check_rate_limit("cancel_appointment", schedule_id=schedule_id, customer_id=customer_id)
		return get_engine().cancel_appointment(args)

	return _run("cancelAppointment", call, write=True)


@frappe.whitelist(methods=["POST"])
def schedule_action(operation: str, args: Any = None, context: Any = None) -> Dict[str, Any]:
	"""
	Punto de entrada para la herramienta de agendamiento del agente IA.

	Args:
		operation: checkAvailability, createAppointment, checkAppointment,
			cancelAppointment o deleteAppointment
		args: dict (o JSON) con los argumentos de la herramienta
		context: dict (o JSON) con schedule_id, customer_id, chat_id,
			organization_id y channel de la conversación

	Las escrituras se limitan por IP y por (schedule, customer).
	"""
	handler = ScheduleActionHandler(get_engine(), lookup_cache=FrappeLookupCache())
	args = frappe.parse_json(args) or {}
	context = frappe.parse_json(context) or {}

	write = operation in ("createAppointment", "cancelAppointment", "deleteAppointment")

	def call():
		if write:
			check_rate_limit(
				"schedule_action",
				schedule_id=context.get("schedule_id") or args.get("schedule_id"),
				customer_id=context.get("customer_id") or args.get("customer_id")
			)
		return handler.handle(operation, args, context)

	return _run(operation, call, write=write)

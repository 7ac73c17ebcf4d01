"""
Schedule Action Handler

Single entry point for the AI tool layer: dispatches a named scheduling
operation with loose arguments to the Booking Engine and always returns a
result envelope, turning engine errors into error envelopes.
"""

import logging
from typing import Any, Dict, Optional

from .booking import BookingEngine
from .exceptions import (
	InvalidArgument,
	ProviderNotFound,
	RateLimited,
	SchedulingError,
	ServiceNotFound,
	SlotUnavailable,
)
from .lookup_cache import NameLookupCache


OPERATIONS = {
	"checkAvailability": "check_availability",
	"createAppointment": "create_appointment",
	"checkAppointment": "check_appointment",
	"cancelAppointment": "cancel_appointment",
	# nombre heredado de la herramienta del agente
	"deleteAppointment": "cancel_appointment",
}

SERVICE_OPERATIONS = ("checkAvailability", "createAppointment")
PROVIDER_OPERATIONS = ("createAppointment",)

# claves del contexto que el agente no puede sobrescribir
CONTEXT_KEYS = ("schedule_id", "customer_id", "chat_id", "organization_id")


def error_response(operation: str, error: SchedulingError) -> Dict[str, Any]:
	"""
	Convierte un error del motor en el envelope de respuesta.

	Returns:
		dict: {
			"success": False,
			"status": "error",
			"operation": str,
			"message": str,
			"error": código estable del error,
			"retryable": bool,
			"data": dict
		}
	"""
	data = {}
	if isinstance(error, SlotUnavailable):
		data["available_times"] = error.available_times
	if isinstance(error, InvalidArgument) and error.field:
		data["field"] = error.field
	if isinstance(error, RateLimited) and error.retry_after:
		data["retry_after"] = error.retry_after

	return {
		"success": False,
		"status": "error",
		"operation": operation,
		"message": error.message or str(error) or error.code,
		"error": error.code,
		"retryable": error.retryable,
		"data": data,
	}


class ScheduleActionHandler:
	"""
	Despacha operaciones de agendamiento pedidas por el agente.

	Args:
		engine: BookingEngine a usar
		lookup_cache: caché nombre -> id (por organización)
		logger: logger a usar
	"""

	def __init__(
		self,
		engine: BookingEngine,
		lookup_cache: Optional[NameLookupCache] = None,
		logger: Optional[logging.Logger] = None
	):
		self.engine = engine
		self.lookup_cache = lookup_cache if lookup_cache is not None else NameLookupCache()
		self.logger = logger or engine.logger

	def handle(
		self,
		operation: str,
		args: Optional[Dict[str, Any]] = None,
		context: Optional[Dict[str, Any]] = None
	) -> Dict[str, Any]:
		"""
		Ejecuta una operación.

		Args:
			operation: checkAvailability, createAppointment, checkAppointment,
				cancelAppointment (o deleteAppointment)
			args: argumentos del agente (date, time, service_id o
				service_name, provider_id o provider_name, appointment_id, notes)
			context: datos de la conversación (schedule_id, customer_id,
				organization_id, chat_id, channel)

		Returns:
			dict: envelope de éxito del motor o de error_response
		"""
		method_name = OPERATIONS.get(operation)
		if method_name is None:
			return error_response(
				operation,
				InvalidArgument(f"Unknown operation {operation!r}", field="operation")
			)

		context = context or {}
		merged = dict(args or {})
		for key in CONTEXT_KEYS:
			if context.get(key):
				merged[key] = context[key]

		channel = context.get("channel") or "agent"
		merged.setdefault("created_via", channel)
		merged.setdefault("canceled_via", channel)

		try:
			if operation in SERVICE_OPERATIONS and not merged.get("service_id"):
				merged["service_id"] = self._resolve_service_id(merged, context)
			if operation in PROVIDER_OPERATIONS and merged.get("provider_name") and not merged.get("provider_id"):
				merged["provider_id"] = self._resolve_provider_id(merged, context)

			result = getattr(self.engine, method_name)(merged)
		except SchedulingError as e:
			if e.retryable:
				self.logger.warning(f"Schedule action {operation} failed: {e.code}: {e}")
			return error_response(operation, e)

		result["operation"] = operation
		return result

	def _resolve_service_id(self, args: Dict[str, Any], context: Dict[str, Any]) -> Optional[str]:
		name = args.get("service_name")
		schedule_id = args.get("schedule_id")
		if not name or not schedule_id:
			# la validación del request reporta el campo faltante
			return None

		organization_id = context.get("organization_id") or schedule_id
		repository = self.engine.repository

		service_id = self.lookup_cache.resolve(
			organization_id,
			f"service:{schedule_id}",
			name,
			lambda: repository.find_service_id(schedule_id, name)
		)
		if service_id is None:
			raise ServiceNotFound(f"Service {name!r} not found in schedule {schedule_id}")
		return service_id

	def _resolve_provider_id(self, args: Dict[str, Any], context: Dict[str, Any]) -> Optional[str]:
		name = args.get("provider_name")
		schedule_id = args.get("schedule_id")
		if not schedule_id:
			return None

		organization_id = context.get("organization_id") or schedule_id
		repository = self.engine.repository

		provider_id = self.lookup_cache.resolve(
			organization_id,
			f"provider:{schedule_id}",
			name,
			lambda: repository.find_provider_id(schedule_id, name)
		)
		if provider_id is None:
			raise ProviderNotFound(f"Provider {name!r} not found in schedule {schedule_id}")
		return provider_id

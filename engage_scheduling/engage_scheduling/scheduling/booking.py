"""
Booking Engine

Public scheduling operations: check availability, create, inspect and cancel
appointments. The engine holds no state between calls; every write goes
through the repository's conditional insert/update.

Appointment lifecycle:
	scheduled -> canceled
	scheduled -> confirmed -> canceled
``confirmed`` is set by a human agent, never by this engine.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pytz

from .availability import eligible_providers, get_open_intervals
from .exceptions import (
	AppointmentNotFound,
	BookingConflict,
	NoProviderAvailable,
	ProviderNotFound,
	ScheduleNotFound,
	ServiceNotFound,
	SlotUnavailable,
)
from .models import (
	ACTIVE_STATUSES,
	Appointment,
	Schedule,
	Service,
	STATUS_CANCELED,
	STATUS_SCHEDULED,
)
from .repository import Notifier, SchedulingRepository
from .requests import (
	CancelAppointmentRequest,
	CheckAppointmentRequest,
	CheckAvailabilityRequest,
	CreateAppointmentRequest,
)
from .slots import Slot, available_times, find_slot, generate_slots, is_provider_free


def _utcnow() -> datetime:
	return datetime.now(pytz.UTC)


def _coerce(request, request_cls):
	if isinstance(request, dict):
		return request_cls.from_args(request)
	return request


def _result(operation: str, message: str, data: Dict[str, Any], status: str = "success") -> Dict[str, Any]:
	return {
		"success": True,
		"status": status,
		"operation": operation,
		"message": message,
		"data": data,
	}


class BookingEngine:
	"""
	Orquesta validación de slots, asignación de proveedor y persistencia.

	Args:
		repository: implementación de SchedulingRepository
		notifier: Notifier opcional para avisar a los proveedores
		logger: logger a usar (por defecto el del módulo)
		clock: callable que devuelve el datetime actual (aware)
	"""

	def __init__(
		self,
		repository: SchedulingRepository,
		notifier: Optional[Notifier] = None,
		logger: Optional[logging.Logger] = None,
		clock: Optional[Callable[[], datetime]] = None
	):
		self.repository = repository
		self.notifier = notifier
		self.logger = logger or logging.getLogger(__name__)
		self.clock = clock or _utcnow

	# ===== PUBLIC OPERATIONS =====

	def check_availability(
		self, request: Union[CheckAvailabilityRequest, Dict[str, Any]]
	) -> Dict[str, Any]:
		"""
		Consulta de solo lectura de horarios disponibles.

		Sin ``time`` devuelve la lista completa y si existe algún horario.
		Con ``time`` indica si ese horario (o su bucket, en modo por llegada)
		está disponible, junto con la lista completa.

		Raises:
			ScheduleNotFound, ServiceNotFound
		"""
		request = _coerce(request, CheckAvailabilityRequest)
		schedule, service = self._load(request.schedule_id, request.service_id)

		slots = self._compute_slots(schedule, service, request.date)
		times = available_times(slots)

		data = {
			"schedule_id": schedule.id,
			"service_id": service.id,
			"date": request.date,
			"by_arrival_time": service.by_arrival_time,
			"available_times": times,
			"available": bool(times),
		}

		if not request.time:
			if times:
				message = f"{len(times)} available time(s) on {request.date}"
			else:
				message = f"No available times on {request.date}"
			return _result("checkAvailability", message, data)

		slot = find_slot(slots, request.time, service.by_arrival_time)
		data["time"] = request.time
		data["available"] = slot is not None

		if slot is None:
			return _result(
				"checkAvailability",
				f"{request.time} is not available on {request.date}",
				data,
				status="unavailable"
			)

		data["start_time"] = slot["time"]
		data["end_time"] = slot["end_time"]
		data["time_slot"] = slot["time_slot"]
		return _result("checkAvailability", f"{request.time} is available on {request.date}", data)

	def create_appointment(
		self, request: Union[CreateAppointmentRequest, Dict[str, Any]]
	) -> Dict[str, Any]:
		"""
		Crea una cita en estado ``scheduled``.

		Algoritmo:
			1. Recalcular disponibilidad para (date, time), restringida al
			   proveedor pedido si viene provider_id
			2. Calcular end_time (duración, o fin del bucket en modo por llegada)
			3. Asignar el primer proveedor libre por id, revisando conflictos
			   por proveedor con una lectura nueva de las citas
			4. Insert condicional; si el repositorio lo rechaza, SlotUnavailable
			   con la lista recalculada (sin reintento automático)
			5. Avisar a los proveedores (best effort)

		Raises:
			ScheduleNotFound, ServiceNotFound, ProviderNotFound,
			SlotUnavailable, NoProviderAvailable, RepositoryError
		"""
		request = _coerce(request, CreateAppointmentRequest)
		schedule, service = self._load(request.schedule_id, request.service_id)

		if request.provider_id:
			self._require_provider(schedule, service, request.provider_id)

		slots = self._compute_slots(schedule, service, request.date, request.provider_id)
		slot = find_slot(slots, request.time, service.by_arrival_time)

		if slot is None:
			raise SlotUnavailable(
				f"{request.time} is not available on {request.date}",
				available_times(slots)
			)

		provider_id = self._assign_provider(schedule, service, request.date, slot)

		if provider_id is None:
			fresh_slots = self._compute_slots(schedule, service, request.date, request.provider_id)
			if find_slot(fresh_slots, request.time, service.by_arrival_time) is None:
				raise SlotUnavailable(
					f"{request.time} is no longer available on {request.date}",
					available_times(fresh_slots)
				)

			self.logger.warning(
				f"No provider assignable for schedule {schedule.id} on "
				f"{request.date} {slot['time']} although the slot is open "
				f"(candidates: {', '.join(slot['providers']) or 'none'})"
			)
			raise NoProviderAvailable(
				f"No provider available for {request.time} on {request.date}"
			)

		now = self.clock().isoformat()
		metadata = {
			"created_via": request.created_via,
			"created_at": now,
			"by_arrival_time": service.by_arrival_time,
		}
		if request.provider_id:
			metadata["requested_provider"] = request.provider_id
		if request.chat_id:
			metadata["chat_id"] = request.chat_id
		if request.organization_id:
			metadata["organization_id"] = request.organization_id

		if service.by_arrival_time:
			start_time = slot["time"]
			metadata["requested_time"] = request.time
		else:
			start_time = request.time

		record = Appointment(
			schedule_id=schedule.id,
			provider_id=provider_id,
			service_id=service.id,
			customer_id=request.customer_id,
			date=request.date,
			start_time=start_time,
			end_time=slot["end_time"],
			time_slot=slot["time_slot"],
			status=STATUS_SCHEDULED,
			notes=request.notes,
			metadata=metadata,
		)

		try:
			saved = self.repository.insert_appointment(
				record,
				capacity=service.capacity if service.by_arrival_time else None
			)
		except BookingConflict:
			self.logger.info(
				f"Booking rejected by repository for schedule {schedule.id} "
				f"on {request.date} {record.time_slot}"
			)
			fresh = available_times(
				self._compute_slots(schedule, service, request.date, request.provider_id)
			)
			raise SlotUnavailable(
				f"{request.time} is no longer available on {request.date}",
				fresh
			)

		self._notify_providers(
			saved.schedule_id,
			"New appointment",
			f"{service.title or service.id} on {saved.date} at {saved.start_time}",
			{"type": "appointment", "event": "created", "appointment_id": saved.id,
				"schedule_id": saved.schedule_id}
		)

		return _result(
			"createAppointment",
			f"Appointment scheduled on {saved.date} at {saved.start_time}",
			{"appointment": saved.as_dict()}
		)

	def check_appointment(
		self, request: Union[CheckAppointmentRequest, Dict[str, Any]]
	) -> Dict[str, Any]:
		"""
		Lista las citas activas del cliente, ordenadas por fecha y hora.

		Raises:
			AppointmentNotFound: si se pide un id ausente o de otro cliente
		"""
		request = _coerce(request, CheckAppointmentRequest)

		appointments = self.repository.list_appointments_by_customer(
			request.customer_id,
			ACTIVE_STATUSES,
			appointment_id=request.appointment_id,
			schedule_id=request.schedule_id,
		)

		if request.appointment_id and not appointments:
			raise AppointmentNotFound(f"Appointment {request.appointment_id} not found")

		appointments = sorted(appointments, key=lambda a: (a.date, a.start_time))

		if appointments:
			message = f"{len(appointments)} appointment(s) found"
		else:
			message = "No appointments found"

		return _result(
			"checkAppointment",
			message,
			{"appointments": [a.as_dict() for a in appointments], "count": len(appointments)}
		)

	def cancel_appointment(
		self, request: Union[CancelAppointmentRequest, Dict[str, Any]]
	) -> Dict[str, Any]:
		"""
		Cancela por id, o todas las citas activas del cliente en una fecha.

		Cada cancelación es un update condicional independiente; una cita ya
		cancelada no se vuelve a tocar.

		Raises:
			AppointmentNotFound: si nada coincide
		"""
		request = _coerce(request, CancelAppointmentRequest)

		targets = self.repository.list_appointments_by_customer(
			request.customer_id,
			ACTIVE_STATUSES,
			appointment_id=request.appointment_id,
			schedule_id=request.schedule_id,
			target_date=request.date,
		)

		if not targets:
			raise AppointmentNotFound(self._cancel_not_found_message(request))

		canceled = []
		for appt in targets:
			updated = self.repository.update_appointment_status(
				appt.id,
				STATUS_CANCELED,
				{
					"canceled_at": self.clock().isoformat(),
					"canceled_by": request.customer_id,
					"canceled_via": request.canceled_via,
				},
				ACTIVE_STATUSES,
			)
			if updated is not None:
				canceled.append(updated)

		if not canceled:
			raise AppointmentNotFound(self._cancel_not_found_message(request))

		for appt in canceled:
			self._notify_providers(
				appt.schedule_id,
				"Appointment canceled",
				f"Appointment on {appt.date} at {appt.start_time} was canceled",
				{"type": "appointment", "event": "canceled", "appointment_id": appt.id,
					"schedule_id": appt.schedule_id}
			)

		return _result(
			"cancelAppointment",
			f"{len(canceled)} appointment(s) canceled",
			{
				"canceled_count": len(canceled),
				"canceled_appointments": [a.as_dict() for a in canceled],
			}
		)

	# ===== HELPERS =====

	def _load(self, schedule_id: str, service_id: str) -> Tuple[Schedule, Service]:
		schedule = self.repository.get_schedule(schedule_id)
		if schedule is None:
			raise ScheduleNotFound(f"Schedule {schedule_id} not found")

		service = self.repository.get_service(service_id)
		if service is None or service.schedule_id != schedule.id:
			raise ServiceNotFound(f"Service {service_id} not found in schedule {schedule_id}")

		return schedule, service

	def _compute_slots(
		self,
		schedule: Schedule,
		service: Service,
		target_date: str,
		provider_id: Optional[str] = None
	) -> List[Slot]:
		"""Slots del día; con provider_id solo los que ese proveedor puede tomar."""
		if not schedule.is_active:
			return []

		providers = eligible_providers(
			self.repository.list_providers(schedule.id, service.id),
			service.id
		)
		intervals = get_open_intervals(self.repository, schedule, providers, target_date)
		if not intervals:
			return []

		appointments = self.repository.list_appointments(schedule.id, target_date, ACTIVE_STATUSES)
		slots = generate_slots(intervals, appointments, service, schedule.slot_granularity)

		if provider_id:
			slots = [
				dict(s, providers=[provider_id])
				for s in slots
				if provider_id in s["providers"]
			]
		return slots

	def _require_provider(self, schedule: Schedule, service: Service, provider_id: str) -> None:
		providers = eligible_providers(
			self.repository.list_providers(schedule.id, service.id),
			service.id
		)
		if not any(p.id == provider_id for p in providers):
			raise ProviderNotFound(
				f"Provider {provider_id} does not perform service {service.id} in schedule {schedule.id}"
			)

	def _assign_provider(
		self,
		schedule: Schedule,
		service: Service,
		target_date: str,
		slot: Slot
	) -> Optional[str]:
		"""
		Elige el proveedor de la cita.

		En modo estándar vuelve a leer las citas del día y toma, por id, el
		primer candidato del slot sin conflicto. En modo por llegada la
		capacidad es del bucket, así que basta el primer candidato.
		"""
		candidates = slot["providers"]
		if not candidates:
			return None

		if service.by_arrival_time:
			return candidates[0]

		appointments = self.repository.list_appointments(schedule.id, target_date, ACTIVE_STATUSES)
		for provider_id in candidates:
			if is_provider_free(provider_id, appointments, slot["start"], slot["end"]):
				return provider_id
		return None

	def _notify_providers(self, schedule_id: str, heading: str, content: str, data: Dict[str, Any]) -> None:
		"""Avisa a los proveedores activos del schedule. Nunca propaga errores."""
		if self.notifier is None:
			return

		try:
			providers = self.repository.list_providers(schedule_id)
			recipients = sorted({p.profile_id for p in providers if p.is_active and p.profile_id})
			if not recipients:
				return
			self.notifier.notify(recipients, heading, content, data)
		except Exception:
			# la cita ya quedó guardada; el aviso es best effort
			self.logger.exception(f"Notification failed for schedule {schedule_id}: {heading}")

	@staticmethod
	def _cancel_not_found_message(request: CancelAppointmentRequest) -> str:
		if request.appointment_id:
			return f"Appointment {request.appointment_id} not found"
		return f"No appointments found on {request.date}"

"""
Scheduling Errors

Error taxonomy raised by the scheduling engine. Each error carries a stable
``code`` used when the error is turned into an API/tool envelope.
"""

from typing import List, Optional


class SchedulingError(Exception):
	"""Excepción base del motor de agendamiento."""

	code = "scheduling_error"
	retryable = False

	def __init__(self, message: str = ""):
		super().__init__(message)
		self.message = message


class InvalidArgument(SchedulingError):
	"""Entrada mal formada o faltante (error del llamador)."""

	code = "invalid_argument"

	def __init__(self, message: str = "", field: Optional[str] = None):
		super().__init__(message)
		self.field = field


class InvalidTimeFormat(InvalidArgument):
	code = "invalid_time_format"


class NotFound(SchedulingError):
	code = "not_found"


class ScheduleNotFound(NotFound):
	code = "schedule_not_found"


class ServiceNotFound(NotFound):
	code = "service_not_found"


class AppointmentNotFound(NotFound):
	code = "appointment_not_found"


class ProviderNotFound(NotFound):
	code = "provider_not_found"


class SlotUnavailable(SchedulingError):
	"""
	El horario pedido ya no está disponible.

	Siempre lleva la lista actualizada de horarios para que el llamador
	pueda ofrecer alternativas sin otra consulta.
	"""

	code = "slot_unavailable"

	def __init__(self, message: str = "", available_times: Optional[List[str]] = None):
		super().__init__(message)
		self.available_times = list(available_times or [])


class NoProviderAvailable(SchedulingError):
	"""Slot abierto en la unión de proveedores pero ninguno asignable."""

	code = "no_provider_available"


class RepositoryError(SchedulingError):
	"""Falla transitoria de almacenamiento (timeout, deadlock)."""

	code = "repository_error"
	retryable = True


class BookingConflict(SchedulingError):
	"""The repository rejected a conditional insert."""

	code = "booking_conflict"


class NotificationError(SchedulingError):
	code = "notification_error"


class RateLimited(SchedulingError):
	"""Demasiadas solicitudes del mismo origen en la ventana de tiempo."""

	code = "rate_limited"
	retryable = True

	def __init__(self, message: str = "", retry_after: Optional[int] = None):
		super().__init__(message)
		self.retry_after = retry_after

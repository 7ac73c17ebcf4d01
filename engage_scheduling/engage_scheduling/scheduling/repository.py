"""
Scheduling Collaborators

Defines the interfaces the booking engine consumes: the repository holding
configuration and appointments, and the best-effort notifier.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from .models import (
	Appointment,
	AvailabilityWindow,
	Provider,
	Schedule,
	ScheduleException,
	Service,
)


class SchedulingRepository(ABC):
	"""
	Interfaz base del almacenamiento de agendamiento.

	Las ausencias se devuelven como None o lista vacía. Las fallas de
	almacenamiento (timeout, deadlock) se levantan como RepositoryError.
	"""

	@abstractmethod
	def get_schedule(self, schedule_id: str) -> Optional[Schedule]:
		pass

	@abstractmethod
	def get_service(self, service_id: str) -> Optional[Service]:
		pass

	@abstractmethod
	def list_providers(self, schedule_id: str, service_id: Optional[str] = None) -> List[Provider]:
		"""Proveedores activos del schedule que atienden el servicio (si se indica)."""
		pass

	@abstractmethod
	def list_availability_windows(
		self, provider_ids: Iterable[str], weekday: int
	) -> List[AvailabilityWindow]:
		pass

	@abstractmethod
	def list_exceptions(
		self, schedule_id: str, provider_ids: Iterable[str], target_date: str
	) -> List[ScheduleException]:
		"""Excepciones de la fecha, incluidas las que aplican a todo el schedule."""
		pass

	@abstractmethod
	def list_appointments(
		self,
		schedule_id: str,
		target_date: str,
		statuses: Iterable[str],
	) -> List[Appointment]:
		pass

	@abstractmethod
	def insert_appointment(self, record: Appointment, capacity: Optional[int] = None) -> Appointment:
		"""
		Inserta una cita de forma condicional.

		Debe re-validar de forma atómica, antes de escribir:
			- modo estándar (capacity None): ninguna cita activa del mismo
			  proveedor en la fecha se solapa con [start_time, end_time)
			- modo por llegada: las citas activas con la misma
			  (schedule, fecha, time_slot, servicio) son menos que capacity

		Returns:
			Appointment: el registro persistido, con id y created_at

		Raises:
			BookingConflict: si el predicado ya no se cumple
			RepositoryError: falla transitoria
		"""
		pass

	@abstractmethod
	def update_appointment_status(
		self,
		appointment_id: str,
		status: str,
		metadata: Dict[str, Any],
		expected_statuses: Iterable[str],
	) -> Optional[Appointment]:
		"""
		Cambia el status solo si el actual está en expected_statuses.

		La metadata se mezcla con la existente. Devuelve None si la cita no
		existe o su status no coincide (la actualización no se aplica).
		"""
		pass

	@abstractmethod
	def list_appointments_by_customer(
		self,
		customer_id: str,
		statuses: Iterable[str],
		appointment_id: Optional[str] = None,
		schedule_id: Optional[str] = None,
		target_date: Optional[str] = None,
	) -> List[Appointment]:
		pass

	@abstractmethod
	def find_service_id(self, schedule_id: str, title: str) -> Optional[str]:
		"""Busca un servicio del schedule por título (sin distinguir mayúsculas)."""
		pass

	@abstractmethod
	def find_provider_id(self, schedule_id: str, name: str) -> Optional[str]:
		"""Busca un proveedor activo del schedule por nombre (sin distinguir mayúsculas)."""
		pass


class Notifier(ABC):
	"""Envío de avisos a proveedores. Fire-and-forget."""

	@abstractmethod
	def notify(
		self,
		recipient_ids: List[str],
		heading: str,
		content: str,
		data: Dict[str, Any],
	) -> None:
		"""
		Raises:
			NotificationError: si el envío falla
		"""
		pass

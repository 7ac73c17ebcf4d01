"""
Test doubles for the scheduling engine.

InMemorySchedulingRepository keeps everything in dicts and guards its
conditional writes with a lock, so it honours the same insert/update
contract as the Frappe repository and can be driven from several threads.
"""

import itertools
import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import pytz

from engage_scheduling.engage_scheduling.scheduling.exceptions import BookingConflict, NotificationError
from engage_scheduling.engage_scheduling.scheduling.lookup_cache import normalize_name
from engage_scheduling.engage_scheduling.scheduling.models import (
	ACTIVE_STATUSES,
	Appointment,
	AvailabilityWindow,
	Provider,
	Schedule,
	ScheduleException,
	Service,
	STATUS_CANCELED,
)
from engage_scheduling.engage_scheduling.scheduling.repository import Notifier, SchedulingRepository
from engage_scheduling.engage_scheduling.scheduling.slots import bucket_start_of
from engage_scheduling.engage_scheduling.scheduling.time_utils import time_to_minutes


MONDAY = "2025-03-10"
FIXED_NOW = datetime(2025, 3, 1, 15, 0, tzinfo=pytz.UTC)


def fixed_clock() -> datetime:
	return FIXED_NOW


def _copy(appt: Appointment) -> Appointment:
	return replace(appt, metadata=dict(appt.metadata))


class InMemorySchedulingRepository(SchedulingRepository):
	def __init__(self):
		self.schedules = {}
		self.services = {}
		self.providers = {}
		self.windows = []
		self.exceptions = []
		self.appointments = {}
		self.insert_calls = 0
		self._lock = threading.Lock()
		self._ids = itertools.count(1)

	# ===== FIXTURE HELPERS =====

	def add_schedule(self, schedule: Schedule) -> Schedule:
		self.schedules[schedule.id] = schedule
		return schedule

	def add_service(self, service: Service) -> Service:
		self.services[service.id] = service
		return service

	def add_provider(self, provider: Provider) -> Provider:
		self.providers[provider.id] = provider
		return provider

	def add_window(self, provider_id: str, weekday: int, start: str, end: str) -> None:
		self.windows.append(AvailabilityWindow(provider_id, weekday, start, end))

	def add_exception(self, exception: ScheduleException) -> None:
		self.exceptions.append(exception)

	def add_appointment(self, **fields) -> Appointment:
		fields.setdefault("id", f"APT-{next(self._ids):04d}")
		fields.setdefault("time_slot", fields.get("start_time"))
		appt = Appointment(**fields)
		self.appointments[appt.id] = appt
		return appt

	# ===== REPOSITORY =====

	def get_schedule(self, schedule_id: str) -> Optional[Schedule]:
		return self.schedules.get(schedule_id)

	def get_service(self, service_id: str) -> Optional[Service]:
		return self.services.get(service_id)

	def list_providers(self, schedule_id: str, service_id: Optional[str] = None) -> List[Provider]:
		return [
			p for p in self.providers.values()
			if p.schedule_id == schedule_id and p.is_active and p.performs(service_id)
		]

	def list_availability_windows(self, provider_ids: Iterable[str], weekday: int) -> List[AvailabilityWindow]:
		provider_ids = set(provider_ids)
		return [w for w in self.windows if w.provider_id in provider_ids and w.weekday == weekday]

	def list_exceptions(self, schedule_id: str, provider_ids: Iterable[str], target_date: str) -> List[ScheduleException]:
		provider_ids = set(provider_ids)
		return [
			e for e in self.exceptions
			if e.schedule_id == schedule_id and e.date == target_date
			and (not e.provider_id or e.provider_id in provider_ids)
		]

	def list_appointments(self, schedule_id: str, target_date: str, statuses: Iterable[str]) -> List[Appointment]:
		statuses = set(statuses)
		with self._lock:
			return [
				_copy(a) for a in self.appointments.values()
				if a.schedule_id == schedule_id and a.date == target_date and a.status in statuses
			]

	def insert_appointment(self, record: Appointment, capacity: Optional[int] = None) -> Appointment:
		with self._lock:
			self.insert_calls += 1
			active = [
				a for a in self.appointments.values()
				if a.date == record.date and a.status in ACTIVE_STATUSES
			]

			if capacity is None:
				start, end = time_to_minutes(record.start_time), time_to_minutes(record.end_time)
				for a in active:
					if a.provider_id != record.provider_id:
						continue
					if time_to_minutes(a.start_time) < end and time_to_minutes(a.end_time) > start:
						raise BookingConflict("provider already booked")
			else:
				used = sum(
					1 for a in active
					if a.schedule_id == record.schedule_id
					and bucket_start_of(a) == bucket_start_of(record)
					and a.service_id == record.service_id
				)
				if used >= capacity:
					raise BookingConflict("bucket full")

			saved = replace(
				record,
				id=f"APT-{next(self._ids):04d}",
				created_at=FIXED_NOW.isoformat(),
				metadata=dict(record.metadata)
			)
			self.appointments[saved.id] = saved
			return _copy(saved)

	def update_appointment_status(
		self,
		appointment_id: str,
		status: str,
		metadata: Dict[str, Any],
		expected_statuses: Iterable[str],
	) -> Optional[Appointment]:
		with self._lock:
			current = self.appointments.get(appointment_id)
			if current is None or current.status not in expected_statuses:
				return None

			merged = dict(current.metadata)
			merged.update(metadata)
			updated = replace(current, status=status, metadata=merged)
			self.appointments[appointment_id] = updated
			return _copy(updated)

	def list_appointments_by_customer(
		self,
		customer_id: str,
		statuses: Iterable[str],
		appointment_id: Optional[str] = None,
		schedule_id: Optional[str] = None,
		target_date: Optional[str] = None,
	) -> List[Appointment]:
		statuses = set(statuses)
		with self._lock:
			return [
				_copy(a) for a in self.appointments.values()
				if a.customer_id == customer_id and a.status in statuses
				and (appointment_id is None or a.id == appointment_id)
				and (schedule_id is None or a.schedule_id == schedule_id)
				and (target_date is None or a.date == target_date)
			]

	def find_service_id(self, schedule_id: str, title: str) -> Optional[str]:
		wanted = normalize_name(title)
		for service in sorted(self.services.values(), key=lambda s: s.id):
			if service.schedule_id == schedule_id and normalize_name(service.title) == wanted:
				return service.id
		return None

	def find_provider_id(self, schedule_id: str, name: str) -> Optional[str]:
		wanted = normalize_name(name)
		if not wanted:
			return None
		for provider in sorted(self.providers.values(), key=lambda p: p.id):
			if (
				provider.schedule_id == schedule_id and provider.is_active
				and normalize_name(provider.name) == wanted
			):
				return provider.id
		return None


class RacingRepository(InMemorySchedulingRepository):
	"""
	Holds the first ``parties`` availability reads at a barrier so that
	concurrent bookings all see the same snapshot before anyone writes.
	"""

	def __init__(self, parties: int = 2):
		super().__init__()
		self.barrier = threading.Barrier(parties, timeout=5)
		self._pending = parties
		self._pending_lock = threading.Lock()

	def list_appointments(self, schedule_id, target_date, statuses):
		result = super().list_appointments(schedule_id, target_date, statuses)
		with self._pending_lock:
			wait = self._pending > 0
			self._pending -= 1
		if wait:
			self.barrier.wait()
		return result


class CompetingRepository(InMemorySchedulingRepository):
	"""
	A competitor books PRV-1 at 10:00 right before the second appointment
	read of a booking (the provider assignment). With ``withdraw`` the
	competitor cancels right after that read, so later reads see the slot
	open again.
	"""

	def __init__(self, withdraw: bool = False):
		super().__init__()
		self.withdraw = withdraw
		self.reads = 0

	def list_appointments(self, schedule_id, target_date, statuses):
		self.reads += 1
		if self.reads != 2:
			return super().list_appointments(schedule_id, target_date, statuses)

		competitor = self.add_appointment(
			schedule_id=schedule_id, provider_id="PRV-1", service_id="SRV-1", customer_id="C-other",
			date=target_date, start_time="10:00", end_time="10:30",
		)
		result = super().list_appointments(schedule_id, target_date, statuses)
		if self.withdraw:
			self.appointments[competitor.id] = replace(competitor, status=STATUS_CANCELED)
		return result


class RecordingNotifier(Notifier):
	def __init__(self):
		self.sent = []

	def notify(self, recipient_ids, heading, content, data):
		self.sent.append({
			"recipient_ids": list(recipient_ids),
			"heading": heading,
			"content": content,
			"data": dict(data),
		})


class FailingNotifier(Notifier):
	def notify(self, recipient_ids, heading, content, data):
		raise NotificationError("push service down")


class BrokenNotifier(Notifier):
	"""Raises something outside the scheduling error taxonomy."""

	def notify(self, recipient_ids, heading, content, data):
		raise ConnectionError("push endpoint refused")


def build_repository(
	duration: int = 30,
	granularity: int = 30,
	capacity: int = 1,
	by_arrival_time: bool = False,
	repository_cls=InMemorySchedulingRepository
) -> InMemorySchedulingRepository:
	"""
	Schedule SCH-1 (America/Sao_Paulo) with service SRV-1 and provider PRV-1
	open on Mondays 09:00-12:00.
	"""
	repo = repository_cls()
	repo.add_schedule(Schedule(
		id="SCH-1",
		organization_id="ORG-1",
		title="Clinic",
		timezone="America/Sao_Paulo",
		slot_granularity=granularity,
	))
	repo.add_service(Service(
		id="SRV-1",
		schedule_id="SCH-1",
		title="Consulta",
		duration=duration,
		capacity=capacity,
		by_arrival_time=by_arrival_time,
	))
	repo.add_provider(Provider(id="PRV-1", schedule_id="SCH-1", profile_id="ana@example.com", name="Ana"))
	repo.add_window("PRV-1", 1, "09:00", "12:00")
	return repo

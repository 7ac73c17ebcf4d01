"""
Frappe Scheduling Repository

Implements SchedulingRepository over the app DocTypes:
- Booking Schedule, Schedule Service, Schedule Provider (+ Provider Service)
- Provider Availability, Schedule Exception
- Schedule Appointment

Bookings are serialized per schedule by locking the Booking Schedule row
(SELECT ... FOR UPDATE) until the request transaction commits; the overlap or
capacity predicate is re-checked under that lock before inserting.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

import frappe

from .exceptions import BookingConflict, RepositoryError
from .lookup_cache import DEFAULT_TTL_SECONDS, NameLookupCache, normalize_name
from .models import (
	ACTIVE_STATUSES,
	DEFAULT_SLOT_GRANULARITY,
	DEFAULT_TIMEZONE,
	Appointment,
	AvailabilityWindow,
	Provider,
	Schedule,
	ScheduleException,
	Service,
)
from .repository import SchedulingRepository
from .slots import bucket_start_of
from .time_utils import WEEKDAY_NAMES, minutes_to_time, to_clock


APPOINTMENT_FIELDS = [
	"name", "schedule", "provider", "service", "customer", "date",
	"start_time", "end_time", "time_slot", "status", "notes", "metadata", "creation"
]


@contextmanager
def _guard():
	"""Traduce timeouts/deadlocks de la base de datos a RepositoryError."""
	try:
		yield
	except (frappe.QueryTimeoutError, frappe.QueryDeadlockError) as e:
		raise RepositoryError(f"Database unavailable: {e}")


def to_appointment(row: Any) -> Appointment:
	return Appointment(
		id=row.name,
		schedule_id=row.schedule,
		provider_id=row.provider,
		service_id=row.service,
		customer_id=row.customer,
		date=str(row.date),
		start_time=to_clock(row.start_time),
		end_time=to_clock(row.end_time),
		time_slot=row.time_slot,
		status=row.status,
		notes=row.notes,
		metadata=frappe.parse_json(row.metadata) or {},
		created_at=str(row.creation) if row.creation else None,
	)


class FrappeSchedulingRepository(SchedulingRepository):
	"""Repositorio sobre la base de datos del sitio Frappe."""

	def get_schedule(self, schedule_id: str) -> Optional[Schedule]:
		with _guard():
			row = frappe.db.get_value(
				"Booking Schedule",
				schedule_id,
				["name", "organization", "schedule_title", "timezone", "default_slot_duration", "is_active"],
				as_dict=True
			)
		if not row:
			return None

		return Schedule(
			id=row.name,
			organization_id=row.organization,
			title=row.schedule_title,
			timezone=row.timezone or DEFAULT_TIMEZONE,
			slot_granularity=row.default_slot_duration or DEFAULT_SLOT_GRANULARITY,
			is_active=bool(row.is_active),
		)

	def get_service(self, service_id: str) -> Optional[Service]:
		with _guard():
			row = frappe.db.get_value(
				"Schedule Service",
				service_id,
				["name", "schedule", "title", "duration", "capacity", "by_arrival_time"],
				as_dict=True
			)
		if not row:
			return None

		return Service(
			id=row.name,
			schedule_id=row.schedule,
			title=row.title,
			duration=row.duration or 60,
			capacity=row.capacity or 1,
			by_arrival_time=bool(row.by_arrival_time),
		)

	def list_providers(self, schedule_id: str, service_id: Optional[str] = None) -> List[Provider]:
		with _guard():
			rows = frappe.get_all(
				"Schedule Provider",
				filters={"schedule": schedule_id, "is_active": 1},
				fields=["name", "provider_name", "user", "is_active"],
				order_by="name asc"
			)
			if not rows:
				return []

			service_rows = frappe.get_all(
				"Provider Service",
				filters={
					"parent": ["in", [r.name for r in rows]],
					"parenttype": "Schedule Provider"
				},
				fields=["parent", "service"]
			)

		services_by_provider = {}
		for row in service_rows:
			services_by_provider.setdefault(row.parent, []).append(row.service)

		providers = [
			Provider(
				id=r.name,
				schedule_id=schedule_id,
				profile_id=r.user,
				service_ids=services_by_provider.get(r.name, []),
				is_active=bool(r.is_active),
				name=r.provider_name,
			)
			for r in rows
		]
		return [p for p in providers if p.performs(service_id)]

	def list_availability_windows(self, provider_ids: Iterable[str], weekday: int) -> List[AvailabilityWindow]:
		provider_ids = list(provider_ids)
		if not provider_ids:
			return []

		with _guard():
			rows = frappe.get_all(
				"Provider Availability",
				filters={"provider": ["in", provider_ids], "weekday": WEEKDAY_NAMES[weekday]},
				fields=["provider", "start_time", "end_time"]
			)

		return [
			AvailabilityWindow(
				provider_id=r.provider,
				weekday=weekday,
				start_time=to_clock(r.start_time),
				end_time=to_clock(r.end_time),
			)
			for r in rows
		]

	def list_exceptions(
		self, schedule_id: str, provider_ids: Iterable[str], target_date: str
	) -> List[ScheduleException]:
		provider_ids = set(provider_ids)

		with _guard():
			rows = frappe.get_all(
				"Schedule Exception",
				filters={"schedule": schedule_id, "date": target_date},
				fields=["provider", "all_day", "start_time", "end_time"]
			)

		return [
			ScheduleException(
				schedule_id=schedule_id,
				date=target_date,
				provider_id=r.provider or None,
				all_day=bool(r.all_day),
				start_time=to_clock(r.start_time) if r.start_time else None,
				end_time=to_clock(r.end_time) if r.end_time else None,
			)
			for r in rows
			if not r.provider or r.provider in provider_ids
		]

	def list_appointments(self, schedule_id: str, target_date: str, statuses: Iterable[str]) -> List[Appointment]:
		with _guard():
			rows = frappe.get_all(
				"Schedule Appointment",
				filters={
					"schedule": schedule_id,
					"date": target_date,
					"status": ["in", list(statuses)]
				},
				fields=APPOINTMENT_FIELDS,
				order_by="start_time asc"
			)
		return [to_appointment(r) for r in rows]

	def insert_appointment(self, record: Appointment, capacity: Optional[int] = None) -> Appointment:
		with _guard():
			frappe.db.sql(
				"SELECT name FROM `tabBooking Schedule` WHERE name = %s FOR UPDATE",
				(record.schedule_id,)
			)

			if capacity is None:
				clash = frappe.db.sql(
					"""
					SELECT name FROM `tabSchedule Appointment`
					WHERE provider = %(provider)s
						AND date = %(date)s
						AND status IN %(statuses)s
						AND start_time < %(end_time)s
						AND end_time > %(start_time)s
					LIMIT 1
					""",
					{
						"provider": record.provider_id,
						"date": record.date,
						"statuses": ACTIVE_STATUSES,
						"start_time": record.start_time,
						"end_time": record.end_time,
					}
				)
				if clash:
					raise BookingConflict(
						f"Provider {record.provider_id} already booked on {record.date} at {record.start_time}"
					)
			else:
				# capacidad por inicio de bucket, sin importar el fin recortado del label
				used = frappe.db.count(
					"Schedule Appointment",
					{
						"schedule": record.schedule_id,
						"date": record.date,
						"time_slot": ["like", f"{minutes_to_time(bucket_start_of(record))}-%"],
						"service": record.service_id,
						"status": ["in", list(ACTIVE_STATUSES)],
					}
				)
				if used >= capacity:
					raise BookingConflict(f"Bucket {record.time_slot} on {record.date} is full")

			doc = frappe.get_doc({
				"doctype": "Schedule Appointment",
				"schedule": record.schedule_id,
				"provider": record.provider_id,
				"service": record.service_id,
				"customer": record.customer_id,
				"date": record.date,
				"start_time": record.start_time,
				"end_time": record.end_time,
				"time_slot": record.time_slot,
				"status": record.status,
				"notes": record.notes,
				"metadata": frappe.as_json(record.metadata),
			})
			doc.insert(ignore_permissions=True)

		return to_appointment(doc)

	def update_appointment_status(
		self,
		appointment_id: str,
		status: str,
		metadata: Dict[str, Any],
		expected_statuses: Iterable[str],
	) -> Optional[Appointment]:
		with _guard():
			rows = frappe.db.sql(
				"SELECT name, status FROM `tabSchedule Appointment` WHERE name = %s FOR UPDATE",
				(appointment_id,),
				as_dict=True
			)
			if not rows or rows[0].status not in expected_statuses:
				return None

			doc = frappe.get_doc("Schedule Appointment", appointment_id)
			merged = frappe.parse_json(doc.metadata) or {}
			merged.update(metadata)
			doc.status = status
			doc.metadata = frappe.as_json(merged)
			doc.save(ignore_permissions=True)

		return to_appointment(doc)

	def list_appointments_by_customer(
		self,
		customer_id: str,
		statuses: Iterable[str],
		appointment_id: Optional[str] = None,
		schedule_id: Optional[str] = None,
		target_date: Optional[str] = None,
	) -> List[Appointment]:
		filters = {"customer": customer_id, "status": ["in", list(statuses)]}
		if appointment_id:
			filters["name"] = appointment_id
		if schedule_id:
			filters["schedule"] = schedule_id
		if target_date:
			filters["date"] = target_date

		with _guard():
			rows = frappe.get_all(
				"Schedule Appointment",
				filters=filters,
				fields=APPOINTMENT_FIELDS,
				order_by="date asc, start_time asc"
			)
		return [to_appointment(r) for r in rows]

	def find_service_id(self, schedule_id: str, title: str) -> Optional[str]:
		wanted = normalize_name(title)
		with _guard():
			rows = frappe.get_all(
				"Schedule Service",
				filters={"schedule": schedule_id},
				fields=["name", "title"],
				order_by="name asc"
			)
		for row in rows:
			if normalize_name(row.title) == wanted:
				return row.name
		return None

	def find_provider_id(self, schedule_id: str, name: str) -> Optional[str]:
		wanted = normalize_name(name)
		if not wanted:
			return None
		with _guard():
			rows = frappe.get_all(
				"Schedule Provider",
				filters={"schedule": schedule_id, "is_active": 1},
				fields=["name", "provider_name"],
				order_by="name asc"
			)
		for row in rows:
			if normalize_name(row.provider_name) == wanted:
				return row.name
		return None


class FrappeLookupCache(NameLookupCache):
	"""
	NameLookupCache guardado en la caché del sitio (Redis).

	Compartido entre workers; la expiración la maneja Redis.
	"""

	prefix = "engage_scheduling:lookup"

	def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS):
		super().__init__(ttl_seconds=ttl_seconds)

	def _cache_key(self, organization_id: str, kind: str, name: str) -> str:
		org, kind, name = self.make_key(organization_id, kind, name)
		return f"{self.prefix}:{org}:{kind}:{name}"

	def get(self, organization_id: str, kind: str, name: str) -> Optional[str]:
		return frappe.cache.get_value(self._cache_key(organization_id, kind, name))

	def set(self, organization_id: str, kind: str, name: str, value: str) -> None:
		frappe.cache.set_value(
			self._cache_key(organization_id, kind, name),
			value,
			expires_in_sec=self.ttl_seconds
		)

	def invalidate(self, organization_id: str) -> int:
		pattern = f"{self.prefix}:{organization_id or ''}:"
		count = len(frappe.cache.get_keys(pattern))
		frappe.cache.delete_keys(pattern)
		return count

	def __len__(self) -> int:
		return len(frappe.cache.get_keys(f"{self.prefix}:"))

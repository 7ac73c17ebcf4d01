"""
Scheduling Records

Plain records exchanged between the engine and its repository. Times are
``HH:MM`` strings in the schedule's timezone and dates are ``YYYY-MM-DD``.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


STATUS_SCHEDULED = "scheduled"
STATUS_CONFIRMED = "confirmed"
STATUS_CANCELED = "canceled"

ACTIVE_STATUSES = (STATUS_SCHEDULED, STATUS_CONFIRMED)
APPOINTMENT_STATUSES = (STATUS_SCHEDULED, STATUS_CONFIRMED, STATUS_CANCELED)

DEFAULT_TIMEZONE = "America/Sao_Paulo"
DEFAULT_SLOT_GRANULARITY = 60


@dataclass
class Schedule:
	id: str
	organization_id: Optional[str] = None
	title: Optional[str] = None
	timezone: str = DEFAULT_TIMEZONE
	slot_granularity: int = DEFAULT_SLOT_GRANULARITY
	is_active: bool = True


@dataclass
class Service:
	id: str
	schedule_id: str
	title: Optional[str] = None
	duration: int = 60
	capacity: int = 1
	by_arrival_time: bool = False


@dataclass
class Provider:
	id: str
	schedule_id: str
	profile_id: Optional[str] = None
	service_ids: List[str] = field(default_factory=list)
	is_active: bool = True
	name: Optional[str] = None

	def performs(self, service_id: Optional[str]) -> bool:
		"""Lista vacía de servicios significa que atiende todos."""
		if not service_id or not self.service_ids:
			return True
		return service_id in self.service_ids


@dataclass
class AvailabilityWindow:
	provider_id: str
	weekday: int
	start_time: str
	end_time: str


@dataclass
class ScheduleException:
	schedule_id: str
	date: str
	provider_id: Optional[str] = None
	all_day: bool = False
	start_time: Optional[str] = None
	end_time: Optional[str] = None

	def applies_to(self, provider_id: str) -> bool:
		return not self.provider_id or self.provider_id == provider_id


@dataclass
class Appointment:
	schedule_id: str
	provider_id: str
	service_id: str
	customer_id: str
	date: str
	start_time: str
	end_time: str
	time_slot: str
	status: str = STATUS_SCHEDULED
	notes: Optional[str] = None
	metadata: Dict[str, Any] = field(default_factory=dict)
	id: Optional[str] = None
	created_at: Optional[str] = None

	@property
	def is_active(self) -> bool:
		return self.status in ACTIVE_STATUSES

	def as_dict(self) -> Dict[str, Any]:
		return asdict(self)

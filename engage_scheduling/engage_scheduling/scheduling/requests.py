"""
Booking Requests

One request struct per engine operation. ``from_args`` validates a loose
argument dict (HTTP form data, AI tool arguments) once, at the boundary.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .exceptions import InvalidArgument
from .validators import (
	sanitize_string,
	validate_date_string,
	validate_docname,
	validate_time_string,
)


def _optional_docname(args: Dict[str, Any], key: str) -> Optional[str]:
	value = args.get(key)
	if value is None or (isinstance(value, str) and not value.strip()):
		return None
	return validate_docname(value, key)


@dataclass
class CheckAvailabilityRequest:
	schedule_id: str
	date: str
	service_id: str
	time: Optional[str] = None

	@classmethod
	def from_args(cls, args: Dict[str, Any]) -> "CheckAvailabilityRequest":
		time = args.get("time")
		return cls(
			schedule_id=validate_docname(args.get("schedule_id"), "schedule_id"),
			date=validate_date_string(args.get("date"), "date"),
			service_id=validate_docname(args.get("service_id"), "service_id"),
			time=validate_time_string(time, "time") if time else None,
		)


@dataclass
class CreateAppointmentRequest:
	schedule_id: str
	customer_id: str
	date: str
	time: str
	service_id: str
	notes: Optional[str] = None
	created_via: str = "api"
	provider_id: Optional[str] = None
	chat_id: Optional[str] = None
	organization_id: Optional[str] = None

	@classmethod
	def from_args(cls, args: Dict[str, Any]) -> "CreateAppointmentRequest":
		return cls(
			schedule_id=validate_docname(args.get("schedule_id"), "schedule_id"),
			customer_id=validate_docname(args.get("customer_id"), "customer_id"),
			date=validate_date_string(args.get("date"), "date"),
			time=validate_time_string(args.get("time"), "time"),
			service_id=validate_docname(args.get("service_id"), "service_id"),
			notes=sanitize_string(args.get("notes"), 2000),
			created_via=args.get("created_via") or "api",
			provider_id=_optional_docname(args, "provider_id"),
			chat_id=sanitize_string(args.get("chat_id"), 140),
			organization_id=sanitize_string(args.get("organization_id"), 140),
		)


@dataclass
class CheckAppointmentRequest:
	customer_id: str
	appointment_id: Optional[str] = None
	schedule_id: Optional[str] = None

	@classmethod
	def from_args(cls, args: Dict[str, Any]) -> "CheckAppointmentRequest":
		return cls(
			customer_id=validate_docname(args.get("customer_id"), "customer_id"),
			appointment_id=_optional_docname(args, "appointment_id"),
			schedule_id=_optional_docname(args, "schedule_id"),
		)


@dataclass
class CancelAppointmentRequest:
	"""Exactamente uno de appointment_id o date."""

	customer_id: str
	appointment_id: Optional[str] = None
	date: Optional[str] = None
	schedule_id: Optional[str] = None
	canceled_via: str = "api"

	def __post_init__(self):
		if bool(self.appointment_id) == bool(self.date):
			raise InvalidArgument(
				"Provide exactly one of appointment_id or date",
				field="appointment_id"
			)

	@classmethod
	def from_args(cls, args: Dict[str, Any]) -> "CancelAppointmentRequest":
		date = args.get("date")
		return cls(
			customer_id=validate_docname(args.get("customer_id"), "customer_id"),
			appointment_id=_optional_docname(args, "appointment_id"),
			date=validate_date_string(date, "date") if date else None,
			schedule_id=_optional_docname(args, "schedule_id"),
			canceled_via=args.get("canceled_via") or "api",
		)

"""
Slot Generation Service

Enumerates bookable slots from the open intervals of each provider,
considering:
- Existing non-canceled appointments (per-provider overlap)
- Service duration and the schedule slot granularity
- Arrival-order buckets and their shared capacity
"""

from typing import Any, Dict, List, Optional

from .models import Appointment, Service
from .time_utils import minutes_to_time, time_to_minutes


Slot = Dict[str, Any]


def generate_slots(
	intervals: Dict[str, List[Dict[str, int]]],
	appointments: List[Appointment],
	service: Service,
	granularity: int
) -> List[Slot]:
	"""
	Genera los slots reservables de un día.

	Args:
		intervals: intervalos abiertos por proveedor (ver availability.py)
		appointments: citas existentes del schedule en la fecha
		service: servicio a reservar (duración, capacidad, modo)
		granularity: paso entre slots en minutos (del schedule)

	Returns:
		list[dict]: [
			{
				"start": 540,
				"end": 570,
				"time": "09:00",
				"end_time": "09:30",
				"time_slot": "09:00",
				"providers": ["provider-a", "provider-b"]
			},
			...
		]
		ordenada por start. "providers" lista, por id, los proveedores que
		pueden tomar el slot.
	"""
	granularity = granularity or service.duration
	active = [a for a in appointments if a.is_active]

	if service.by_arrival_time:
		return _arrival_slots(intervals, active, service, granularity)
	return _standard_slots(intervals, active, service, granularity)


def generate_available_slots(
	intervals: Dict[str, List[Dict[str, int]]],
	appointments: List[Appointment],
	service: Service,
	granularity: int
) -> List[str]:
	"""Horarios de inicio reservables, ordenados y sin duplicados."""
	return available_times(generate_slots(intervals, appointments, service, granularity))


def is_provider_free(provider_id: str, appointments: List[Appointment], start: int, end: int) -> bool:
	"""
	True si el proveedor no tiene citas activas que se solapen con [start, end).

	Overlap: existing_start < end AND existing_end > start
	"""
	for appt in appointments:
		if appt.provider_id != provider_id or not appt.is_active:
			continue
		if time_to_minutes(appt.start_time) < end and time_to_minutes(appt.end_time) > start:
			return False
	return True


def _standard_slots(
	intervals: Dict[str, List[Dict[str, int]]],
	appointments: List[Appointment],
	service: Service,
	granularity: int
) -> List[Slot]:
	duration = service.duration
	slots = {}

	for provider_id in sorted(intervals):
		for interval in intervals[provider_id]:
			current_start = interval["start"]

			while current_start + duration <= interval["end"]:
				current_end = current_start + duration

				if is_provider_free(provider_id, appointments, current_start, current_end):
					slot = slots.get(current_start)
					if slot is None:
						label = minutes_to_time(current_start)
						slot = {
							"start": current_start,
							"end": current_end,
							"time": label,
							"end_time": minutes_to_time(current_end),
							"time_slot": label,
							"providers": []
						}
						slots[current_start] = slot
					slot["providers"].append(provider_id)

				current_start += granularity

	return [slots[k] for k in sorted(slots)]


def _arrival_slots(
	intervals: Dict[str, List[Dict[str, int]]],
	appointments: List[Appointment],
	service: Service,
	granularity: int
) -> List[Slot]:
	"""
	Buckets por orden de llegada.

	Hay un solo bucket por inicio alineado a la granularidad, compartido por
	todos los proveedores: su fin es el mayor fin recortado entre los
	proveedores que lo cubren, y la capacidad se cuenta por inicio de bucket.
	"""
	duration = service.duration
	capacity = service.capacity or 1
	span = bucket_span(duration, granularity)

	counts = {}
	for appt in appointments:
		if appt.service_id == service.id:
			bucket = bucket_start_of(appt)
			counts[bucket] = counts.get(bucket, 0) + 1

	ends = {}
	members = {}

	for provider_id in sorted(intervals):
		for interval in intervals[provider_id]:
			bucket_start = (interval["start"] // granularity) * granularity

			while bucket_start < interval["end"]:
				bucket_end = min(bucket_start + span, interval["end"])

				if bucket_end - bucket_start >= duration:
					ends[bucket_start] = max(ends.get(bucket_start, bucket_end), bucket_end)
					providers = members.setdefault(bucket_start, [])
					if provider_id not in providers:
						providers.append(provider_id)

				bucket_start += granularity

	slots = []
	for bucket_start in sorted(ends):
		used = counts.get(bucket_start, 0)
		if used >= capacity:
			continue

		bucket_end = ends[bucket_start]
		slots.append({
			"start": bucket_start,
			"end": bucket_end,
			"time": minutes_to_time(bucket_start),
			"end_time": minutes_to_time(bucket_end),
			"time_slot": bucket_label(bucket_start, bucket_end),
			"providers": members[bucket_start],
			"remaining": capacity - used
		})

	return slots


def bucket_span(duration: int, granularity: int) -> int:
	"""
	Ancho de un bucket por llegada.

	Es la granularidad, extendida en buckets completos cuando la duración
	del servicio la supera: granularity * ceil(duration / granularity).
	"""
	return granularity * -(-duration // granularity)


def bucket_label(start: int, end: int) -> str:
	return f"{minutes_to_time(start)}-{minutes_to_time(end)}"


def bucket_start_of(appointment: Appointment) -> int:
	"""Inicio (minutos) del bucket de una cita por llegada."""
	if appointment.time_slot and "-" in appointment.time_slot:
		return time_to_minutes(appointment.time_slot.split("-", 1)[0])
	return time_to_minutes(appointment.start_time)


def available_times(slots: List[Slot]) -> List[str]:
	"""Lista ordenada y sin duplicados de horarios de inicio."""
	return sorted({slot["time"] for slot in slots})


def find_slot(slots: List[Slot], time: str, by_arrival_time: bool = False) -> Optional[Slot]:
	"""
	Busca el slot pedido.

	Modo estándar: el slot que empieza exactamente en ``time``.
	Modo por llegada: el bucket que contiene ``time`` (start <= time < end);
	si varios lo contienen, el de inicio más cercano.
	"""
	minutes = time_to_minutes(time)
	found = None

	for slot in slots:
		if by_arrival_time:
			if slot["start"] <= minutes < slot["end"]:
				found = slot
		elif slot["start"] == minutes:
			return slot

	return found

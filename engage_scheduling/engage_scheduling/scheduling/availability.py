"""
Availability Resolver

Computes the open intervals of each provider for a calendar date, considering:
- Recurring weekly Availability Windows
- Schedule Exceptions (all-day closures and partial time off)
- The schedule timezone (weekday resolution)

Intervals are dicts of minutes since midnight: {"start": int, "end": int}.
"""

from typing import Dict, Iterable, List, Optional

from .models import AvailabilityWindow, Provider, Schedule, ScheduleException
from .repository import SchedulingRepository
from .time_utils import time_to_minutes, weekday_of


Interval = Dict[str, int]


def eligible_providers(providers: Iterable[Provider], service_id: Optional[str] = None) -> List[Provider]:
	"""
	Filtra proveedores activos que atienden el servicio.

	El orden es por id de proveedor; la asignación de citas depende de él.
	"""
	result = [p for p in providers if p.is_active and p.performs(service_id)]
	result.sort(key=lambda p: p.id)
	return result


def get_open_intervals(
	repository: SchedulingRepository,
	schedule: Schedule,
	providers: List[Provider],
	target_date: str
) -> Dict[str, List[Interval]]:
	"""
	Obtiene los intervalos abiertos por proveedor para una fecha.

	Args:
		repository: almacenamiento de configuración
		schedule: schedule dueño de los proveedores
		providers: proveedores elegibles (ya filtrados)
		target_date: fecha YYYY-MM-DD

	Returns:
		dict: {
			"provider-id": [{"start": 540, "end": 720}, ...],
			...
		}

	Algoritmo:
		1. Obtener weekday de la fecha en la timezone del schedule
		2. Obtener Availability Windows de ese weekday
		3. Obtener excepciones de la fecha (del proveedor o de todo el schedule)
		4. Excluir proveedores sin ventanas o con excepción de día completo
		5. Restar excepciones parciales y hacer merge
	"""
	if not providers:
		return {}

	weekday = weekday_of(target_date, schedule.timezone)
	provider_ids = [p.id for p in providers]

	windows = repository.list_availability_windows(provider_ids, weekday)
	if not windows:
		return {}

	exceptions = repository.list_exceptions(schedule.id, provider_ids, target_date)

	return build_open_intervals(provider_ids, windows, exceptions, weekday=weekday)


def build_open_intervals(
	provider_ids: List[str],
	windows: List[AvailabilityWindow],
	exceptions: List[ScheduleException],
	weekday: Optional[int] = None
) -> Dict[str, List[Interval]]:
	"""Versión pura de get_open_intervals, sin acceso al repositorio."""
	result = {}

	for provider_id in provider_ids:
		base_intervals = []
		for window in windows:
			if window.provider_id != provider_id:
				continue
			if weekday is not None and window.weekday != weekday:
				continue
			start = time_to_minutes(window.start_time)
			end = time_to_minutes(window.end_time)
			if start < end:
				base_intervals.append({"start": start, "end": end})

		# Sin ventanas ese día: proveedor excluido
		if not base_intervals:
			continue

		provider_exceptions = [e for e in exceptions if e.applies_to(provider_id)]
		if any(_is_all_day(e) for e in provider_exceptions):
			continue

		intervals = base_intervals
		for exc in provider_exceptions:
			block = {
				"start": time_to_minutes(exc.start_time),
				"end": time_to_minutes(exc.end_time)
			}
			new_intervals = []
			for interval in intervals:
				new_intervals.extend(_interval_subtract(interval, block))
			intervals = new_intervals

		intervals = _merge_intervals(intervals)
		if intervals:
			result[provider_id] = intervals

	return result


def _is_all_day(exc: ScheduleException) -> bool:
	# Sin rango horario equivale a cerrar todo el día
	return bool(exc.all_day) or not (exc.start_time and exc.end_time)


def _merge_intervals(intervals: List[Interval]) -> List[Interval]:
	"""
	Une intervalos adyacentes o overlapping.

	Args:
		intervals: lista de intervalos {"start": int, "end": int}

	Returns:
		list: intervalos merged y ordenados
	"""
	intervals = [dict(i) for i in intervals if i["start"] < i["end"]]
	if not intervals:
		return []

	intervals.sort(key=lambda x: x["start"])

	merged = [intervals[0]]

	for current in intervals[1:]:
		last_merged = merged[-1]

		if current["start"] <= last_merged["end"]:
			if current["end"] > last_merged["end"]:
				last_merged["end"] = current["end"]
		else:
			merged.append(current)

	return merged


def _interval_subtract(interval: Interval, block: Interval) -> List[Interval]:
	"""
	Resta un bloqueo de un intervalo.

	Args:
		interval: {"start": int, "end": int} - intervalo original
		block: {"start": int, "end": int} - bloqueo a restar

	Returns:
		list: lista de intervalos resultantes (puede ser 0, 1 o 2 intervalos)
	"""
	# Casos:
	# 1. Block no se solapa con interval -> retornar interval original
	# 2. Block cubre completamente interval -> retornar []
	# 3. Block cubre parte inicial -> retornar [parte final]
	# 4. Block cubre parte final -> retornar [parte inicial]
	# 5. Block está en medio -> retornar [parte inicial, parte final]

	if block["end"] <= interval["start"] or block["start"] >= interval["end"]:
		return [interval]

	if block["start"] <= interval["start"] and block["end"] >= interval["end"]:
		return []

	if block["start"] <= interval["start"]:
		return [{"start": block["end"], "end": interval["end"]}]

	if block["end"] >= interval["end"]:
		return [{"start": interval["start"], "end": block["start"]}]

	return [
		{"start": interval["start"], "end": block["start"]},
		{"start": block["end"], "end": interval["end"]}
	]

"""
Security Utilities for Booking APIs

Request guards for the guest-accessible booking endpoints:
- Rate limits per client IP, plus per (schedule, customer) on writes so a
  single customer cannot flood one schedule from rotating addresses
- Honeypot validation for bot detection on writes

Guards raise engine errors (RateLimited, InvalidArgument) so endpoints answer
with the usual scheduling envelope. Input validation lives with the engine
(engage_scheduling.engage_scheduling.scheduling.validators).
"""

from typing import Optional, Tuple

import frappe
from frappe import _
from frappe.utils import cint

from engage_scheduling.engage_scheduling.scheduling.exceptions import InvalidArgument, RateLimited


CACHE_PREFIX = "rate_limit:engage_scheduling"

# action: ((limit por IP, ventana), (limit por customer en el schedule, ventana))
RATE_LIMITS = {
    "check_availability": ((30, 60), None),
    "check_appointment": ((30, 60), None),
    "create_appointment": ((5, 60), (3, 300)),
    "cancel_appointment": ((5, 60), (5, 300)),
    "schedule_action": ((60, 60), (20, 60)),
}

DEFAULT_LIMIT = (10, 60)


# ===================
# Rate Limiting
# ===================

def check_rate_limit(
    action: str,
    schedule_id: Optional[str] = None,
    customer_id: Optional[str] = None
) -> None:
    """
    Aplica los límites de RATE_LIMITS a una acción.

    Siempre cuenta por IP. Si la acción tiene límite por cliente y llegan
    schedule_id y customer_id, cuenta además por (schedule, customer).

    Raises:
        RateLimited: con retry_after igual a la ventana del límite excedido
    """
    per_ip, per_customer = RATE_LIMITS.get(action, (DEFAULT_LIMIT, None))

    ip = get_client_ip()
    _hit(f"{CACHE_PREFIX}:{action}:ip:{ip}", per_ip, f"IP: {ip}, Action: {action}")

    if per_customer and schedule_id and customer_id:
        _hit(
            f"{CACHE_PREFIX}:{action}:customer:{schedule_id}:{customer_id}",
            per_customer,
            f"Schedule: {schedule_id}, Customer: {customer_id}, IP: {ip}, Action: {action}"
        )


def _hit(cache_key: str, rule: Tuple[int, int], description: str) -> None:
    """Incrementa el contador de cache_key o levanta RateLimited si ya llegó al límite."""
    limit, seconds = rule
    current = cint(frappe.cache.get_value(cache_key) or 0)

    if current >= limit:
        frappe.log_error(
            title=_("Rate Limit Exceeded"),
            message=f"{description}, Limit: {limit}/{seconds}s"
        )
        raise RateLimited(
            _("Too many requests. Please wait a moment and try again."),
            retry_after=seconds
        )

    frappe.cache.set_value(cache_key, current + 1, expires_in_sec=seconds)


def get_client_ip() -> str:
    """
    IP real del cliente, considerando proxies.

    Fuera de un request HTTP (background jobs, bench console) devuelve "local".
    """
    request = getattr(frappe.local, "request", None)
    if request is None:
        return "local"

    # X-Forwarded-For puede traer varias IPs; la primera es la del cliente
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP", "")
    if real_ip:
        return real_ip.strip()

    return request.remote_addr or "unknown"


# ===================
# Honeypot Validation
# ===================

def check_honeypot(honeypot_value: Optional[str] = None) -> None:
    """
    Rechaza envíos con el campo oculto honeypot lleno (bots).

    Raises:
        InvalidArgument: mensaje genérico, sin revelar la detección
    """
    if honeypot_value:
        frappe.log_error(
            title=_("Bot Detected (Honeypot)"),
            message=f"IP: {get_client_ip()}, Honeypot value: {str(honeypot_value)[:100]}"
        )
        raise InvalidArgument(_("Invalid request"))

from typing import Any
import logging

from .email import send_email

logger = logging.getLogger(__name__)


def format_vendor_message(result: Any, tenant: Any) -> tuple[str, str]:
    """Return ``(subject, body)`` for the new-quote email sent to the vendor."""
    subject = f"Nueva cotización #{result.id} enviada"
    lines = [
        f"Se ha recibido la cotización #{result.id} en {tenant.business_name or 'tu negocio'}.",
        "",
        f"Total: {result.total} {result.currency}",
        f"Enviada: {result.sent_at:%Y-%m-%d %H:%M} UTC",
        f"Teléfono de contacto: {result.contact_phone}",
    ]
    if result.contact_email:
        lines.append(f"Correo de contacto: {result.contact_email}")
    return subject, "\n".join(lines)


def notify_vendor(result: Any, tenant: Any) -> None:
    """Email the vendor about a sent quote. Failures are logged, never raised."""
    recipient = getattr(tenant, "vendor_email", None)
    if not recipient:
        logger.warning("No vendor email configured; skipping notification for quote %s", result.id)
        return
    subject, body = format_vendor_message(result, tenant)
    try:
        send_email(recipient, subject, body)
    except Exception as exc:
        logger.error("Vendor notification failed for quote %s: %s", result.id, exc)

"""Message templates for booking notifications."""

from dataclasses import dataclass
from datetime import date
from html import escape
from typing import Any

BRAND_COLOR = "#1f2937"


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    html: str
    text: str


def _friendly_date(raw: str) -> str:
    value = date.fromisoformat(raw)
    return f"{value:%B} {value.day}, {value.year}"


def _wrap(title: str, paragraphs: list[str]) -> str:
    body = "".join(f"<p>{paragraph}</p>" for paragraph in paragraphs)
    return (
        '<div style="font-family:Helvetica,Arial,sans-serif;max-width:560px;margin:0 auto">'
        f'<h2 style="color:{BRAND_COLOR}">{escape(title)}</h2>'
        f"{body}"
        "</div>"
    )


def _context(payload: dict[str, Any]) -> dict[str, str]:
    return {
        "service": payload.get("service_type_name") or "Session",
        "client": payload.get("client_name") or "",
        "email": payload.get("client_email") or "",
        "phone": payload.get("client_phone") or "",
        "date": _friendly_date(payload["booking_date"]),
        "start": payload.get("start_time") or "",
        "end": payload.get("end_time") or "",
        "reason": payload.get("reason") or "",
        "notes": payload.get("notes") or "",
    }


def booking_pending_admin(payload: dict[str, Any]) -> RenderedMessage:
    ctx = _context(payload)
    text = (
        f"New booking request: {ctx['service']} with {ctx['client']} "
        f"on {ctx['date']} at {ctx['start']}. Contact: {ctx['email']} / {ctx['phone']}."
    )
    lines = [
        f"<strong>{escape(ctx['client'])}</strong> requested a "
        f"<strong>{escape(ctx['service'])}</strong>.",
        f"{escape(ctx['date'])}, {escape(ctx['start'])} - {escape(ctx['end'])}",
        f"{escape(ctx['email'])} &middot; {escape(ctx['phone'])}",
    ]
    if ctx["notes"]:
        lines.append(f"Notes: {escape(ctx['notes'])}")
    lines.append("Confirm or reject it from the agenda.")
    return RenderedMessage(
        subject=f"New booking request: {ctx['service']} on {ctx['date']}",
        html=_wrap("New booking request", lines),
        text=text,
    )


def booking_confirmed_admin(payload: dict[str, Any]) -> RenderedMessage:
    ctx = _context(payload)
    text = f"Booking confirmed: {ctx['service']} with {ctx['client']} on {ctx['date']} at {ctx['start']}."
    return RenderedMessage(
        subject=f"Booking confirmed: {ctx['client']} on {ctx['date']}",
        html=_wrap("Booking confirmed", [escape(text)]),
        text=text,
    )


def booking_requested_client(payload: dict[str, Any]) -> RenderedMessage:
    ctx = _context(payload)
    text = (
        f"Hi {ctx['client']}, we received your request for a {ctx['service']} "
        f"on {ctx['date']} from {ctx['start']} to {ctx['end']}. "
        "We will confirm it shortly."
    )
    return RenderedMessage(
        subject=f"We received your {ctx['service']} request",
        html=_wrap(
            "Request received",
            [
                f"Hi {escape(ctx['client'])},",
                f"We received your request for a <strong>{escape(ctx['service'])}</strong> "
                f"on {escape(ctx['date'])} from {escape(ctx['start'])} to {escape(ctx['end'])}.",
                "You will get another email as soon as it is confirmed.",
            ],
        ),
        text=text,
    )


def booking_confirmed_client(payload: dict[str, Any]) -> RenderedMessage:
    ctx = _context(payload)
    text = (
        f"Hi {ctx['client']}, your {ctx['service']} on {ctx['date']} "
        f"from {ctx['start']} to {ctx['end']} is confirmed."
    )
    return RenderedMessage(
        subject=f"Your {ctx['service']} is confirmed",
        html=_wrap(
            "Booking confirmed",
            [
                f"Hi {escape(ctx['client'])},",
                f"Your <strong>{escape(ctx['service'])}</strong> on {escape(ctx['date'])} "
                f"from {escape(ctx['start'])} to {escape(ctx['end'])} is confirmed.",
                "See you soon!",
            ],
        ),
        text=text,
    )


def booking_rejected_client(payload: dict[str, Any]) -> RenderedMessage:
    ctx = _context(payload)
    lines = [
        f"Hi {escape(ctx['client'])},",
        f"Unfortunately we cannot take your {escape(ctx['service'])} request "
        f"for {escape(ctx['date'])} at {escape(ctx['start'])}.",
    ]
    text = f"Hi {ctx['client']}, we cannot take your {ctx['service']} request for {ctx['date']} at {ctx['start']}."
    if ctx["reason"]:
        lines.append(f"Reason: {escape(ctx['reason'])}")
        text += f" Reason: {ctx['reason']}"
    lines.append("Feel free to pick another time.")
    return RenderedMessage(
        subject=f"About your {ctx['service']} request",
        html=_wrap("Booking not available", lines),
        text=text,
    )


def booking_cancelled_client(payload: dict[str, Any]) -> RenderedMessage:
    ctx = _context(payload)
    reason = ctx["reason"] or "The booking was cancelled by the studio."
    text = f"Hi {ctx['client']}, your {ctx['service']} on {ctx['date']} at {ctx['start']} was cancelled. {reason}"
    return RenderedMessage(
        subject=f"Your {ctx['service']} was cancelled",
        html=_wrap(
            "Booking cancelled",
            [
                f"Hi {escape(ctx['client'])},",
                f"Your <strong>{escape(ctx['service'])}</strong> on {escape(ctx['date'])} "
                f"at {escape(ctx['start'])} was cancelled.",
                escape(reason),
            ],
        ),
        text=text,
    )


TEMPLATES = {
    ("booking_pending", "admin"): booking_pending_admin,
    ("booking_confirmed", "admin"): booking_confirmed_admin,
    ("booking_requested", "client"): booking_requested_client,
    ("booking_confirmed", "client"): booking_confirmed_client,
    ("booking_rejected", "client"): booking_rejected_client,
    ("booking_cancelled", "client"): booking_cancelled_client,
}


def render(kind: str, recipient_role: str, payload: dict[str, Any]) -> RenderedMessage:
    try:
        template = TEMPLATES[(kind, recipient_role)]
    except KeyError:
        raise ValueError(f"No template for {kind!r} to {recipient_role!r}.") from None
    return template(payload)

"""
Transactional email for the storefront.

Every send helper returns an ``(ok, error)`` tuple instead of raising, so the
caller decides what a failed leg means (the order flow rolls back, the
contact form reports a 500).
"""
from __future__ import annotations
import logging
import os
import smtplib
from dataclasses import dataclass
from datetime import datetime, timezone
from email.message import EmailMessage
from typing import Dict, Optional, Tuple

import resend
from jinja2 import Environment, FileSystemLoader, select_autoescape
from starlette.concurrency import run_in_threadpool

from config import settings
from schemas import ContactIn, OrderOut

logger = logging.getLogger(__name__)

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates", "emails")

templates = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html"]),
)
templates.filters["money"] = lambda value: f"{float(value or 0):.2f}"


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    html: str
    text: str
    reply_to: Optional[str] = None


class SmtpTransport:
    def __init__(self, host: str, port: int, user: str, password: str, use_tls: bool = True):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls

    @property
    def sender(self) -> str:
        return f'"{settings.MAIL_FROM_NAME}" <{self.user}>'

    def send(self, email: OutgoingEmail) -> str:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = email.to
        msg["Subject"] = email.subject
        if email.reply_to:
            msg["Reply-To"] = email.reply_to
        msg.set_content(email.text)
        msg.add_alternative(email.html, subtype="html")
        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.user and self.password:
                smtp.login(self.user, self.password)
            smtp.send_message(msg)
        return msg.get("Message-ID") or ""


class ResendTransport:
    def __init__(self, api_key: str, sender_address: str):
        self.api_key = api_key
        self.sender_address = sender_address

    def send(self, email: OutgoingEmail) -> str:
        resend.api_key = self.api_key
        payload: Dict[str, object] = {
            "from": f"{settings.MAIL_FROM_NAME} <{self.sender_address}>",
            "to": [email.to],
            "subject": email.subject,
            "html": email.html,
            "text": email.text,
        }
        if email.reply_to:
            payload["reply_to"] = email.reply_to
        response = resend.Emails.send(payload)
        if not isinstance(response, dict) or not response.get("id"):
            raise RuntimeError(f"Unexpected Resend response: {response}")
        return response["id"]


_transport = None


def build_transport():
    if settings.EMAIL_PROVIDER == "resend":
        if not settings.RESEND_API_KEY:
            raise RuntimeError("RESEND_API_KEY is not configured")
        return ResendTransport(settings.RESEND_API_KEY, settings.smtp_user)
    return SmtpTransport(
        settings.SMTP_HOST,
        settings.SMTP_PORT,
        settings.smtp_user,
        settings.smtp_password,
        settings.SMTP_USE_TLS,
    )


def get_transport():
    global _transport
    if _transport is None:
        _transport = build_transport()
    return _transport


def set_transport(transport) -> None:
    global _transport
    _transport = transport


async def deliver(email: OutgoingEmail) -> Tuple[bool, Optional[str]]:
    try:
        transport = get_transport()
        message_id = await run_in_threadpool(transport.send, email)
    except Exception as exc:
        logger.error("Failed to send '%s' to %s: %s", email.subject, email.to, exc)
        return False, str(exc)
    logger.info("Sent '%s' to %s (%s)", email.subject, email.to, message_id)
    return True, None


def _order_context(order: OrderOut) -> dict:
    created = order.created_at or datetime.now(timezone.utc)
    return {
        "order": order,
        "address": order.address_line(),
        "order_date": created.strftime("%B %d, %Y"),
        "order_datetime": created.strftime("%B %d, %Y %H:%M"),
        "short_id": order.id[:8].upper(),
        "track_url": f"{settings.FRONTEND_URL}/track-order?orderId={order.id}",
        "admin_url": f"{settings.FRONTEND_URL}/admin/orders",
        "brand": settings.MAIL_FROM_NAME,
    }


def render_invoice(order: OrderOut) -> OutgoingEmail:
    ctx = _order_context(order)
    return OutgoingEmail(
        to=order.customer_email,
        subject=f"Order Confirmation - Invoice #{order.id}",
        html=templates.get_template("invoice.html").render(**ctx),
        text=(
            f"Thank you for your order!\n\nOrder ID: {order.id}\n"
            f"Total: Rs {order.total:.2f}\n\n"
            f"Track your order: {ctx['track_url']}\n\n"
            "We will process your order shortly."
        ),
    )


def render_admin_notification(order: OrderOut, admin_email: str) -> OutgoingEmail:
    ctx = _order_context(order)
    return OutgoingEmail(
        to=admin_email,
        subject=f"New Order Received - Order #{order.id}",
        html=templates.get_template("admin_order.html").render(**ctx),
        text=(
            f"New Order Received!\n\nOrder ID: {order.id}\n"
            f"Customer: {order.customer_name}\nTotal: Rs {order.total:.2f}\n\n"
            "Please check the admin panel for details."
        ),
    )


def render_contact(contact: ContactIn, admin_email: str) -> OutgoingEmail:
    return OutgoingEmail(
        to=admin_email,
        subject=f"New Contact Message from {contact.name}",
        html=templates.get_template("contact.html").render(contact=contact, brand=settings.MAIL_FROM_NAME),
        text=f"Name: {contact.name}\nEmail: {contact.email}\n\n{contact.message}",
        reply_to=contact.email,
    )


async def send_invoice_email(order: OrderOut) -> Tuple[bool, Optional[str]]:
    return await deliver(render_invoice(order))


async def send_admin_notification_email(order: OrderOut) -> Tuple[bool, Optional[str]]:
    admin_email = settings.ADMIN_EMAIL
    if not admin_email:
        logger.warning("ADMIN_EMAIL not configured, cannot notify about order %s", order.id)
        return False, "ADMIN_EMAIL not configured"
    return await deliver(render_admin_notification(order, admin_email))


async def send_contact_email(contact: ContactIn) -> Tuple[bool, Optional[str]]:
    admin_email = settings.ADMIN_EMAIL
    if not admin_email:
        return False, "ADMIN_EMAIL not configured"
    return await deliver(render_contact(contact, admin_email))

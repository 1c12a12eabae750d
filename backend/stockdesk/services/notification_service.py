# Overview: Service-layer operations for email notifications; best-effort delivery after commit.

"""
Order notifications over SMTP.

Nothing here raises: delivery failures are logged as warnings and the
caller's (already committed) work stands. Sending is disabled unless
SMTP_ENABLED is set.
"""

from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app

from ..extensions import db
from ..models import OrderRequest, User
from ..models.auth import ROLE_DIRECTOR


def _format_cents(cents: int) -> str:
    return f"{cents / 100:,.2f}"


def send_email(to_email: str, subject: str, content: str) -> bool:
    """Send a plain-text email. Returns True when handed to the SMTP server."""
    config = current_app.config
    if not config.get("SMTP_ENABLED"):
        current_app.logger.debug("SMTP disabled, skipping email to %s: %s", to_email, subject)
        return False

    msg = MIMEMultipart()
    msg['From'] = config["SMTP_FROM"]
    msg['To'] = to_email
    msg['Subject'] = subject
    msg.attach(MIMEText(content, 'plain'))

    try:
        with smtplib.SMTP(config["SMTP_HOST"], config["SMTP_PORT"], timeout=10) as server:
            if config.get("SMTP_USE_TLS"):
                server.starttls()
            if config.get("SMTP_USER"):
                server.login(config["SMTP_USER"], config["SMTP_PASSWORD"])
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        current_app.logger.warning("Failed to send email to %s (%s): %s", to_email, subject, exc)
        return False

    current_app.logger.info("Email sent to %s: %s", to_email, subject)
    return True


def _order_lines(order: OrderRequest) -> str:
    lines = []
    for item in order.items:
        name = item.product.name if item.product else f"Product {item.product_id}"
        lines.append(f"  - {name} x {item.quantity} @ {_format_cents(item.unit_price_cents)}")
    return "\n".join(lines)


def notify_order_created(order: OrderRequest) -> int:
    """Tell the company's directors a new order is waiting. Returns emails sent."""
    directors = db.session.query(User).filter(
        User.company_id == order.company_id,
        User.role == ROLE_DIRECTOR,
        User.is_active.is_(True),
    ).all()
    requester = order.user.name if order.user else f"User {order.user_id}"

    subject = f"New order request #{order.id}"
    body = (
        f"{requester} placed order request #{order.id}.\n\n"
        f"{_order_lines(order)}\n\n"
        f"Total: {_format_cents(order.total_amount_cents)}\n"
    )
    if order.notes:
        body += f"Notes: {order.notes}\n"

    return sum(1 for director in directors if send_email(director.email, subject, body))


def notify_order_status(order: OrderRequest) -> bool:
    """Tell the ordering user their order changed status."""
    user = order.user
    if not user or not user.email:
        return False

    subject = f"Order request #{order.id} is now {order.status}"
    body = (
        f"Hello {user.name},\n\n"
        f"Your order request #{order.id} is now {order.status}.\n\n"
        f"{_order_lines(order)}\n\n"
        f"Total: {_format_cents(order.total_amount_cents)}\n"
    )
    if order.notes:
        body += f"Notes: {order.notes}\n"
    return send_email(user.email, subject, body)

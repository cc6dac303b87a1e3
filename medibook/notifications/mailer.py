"""Booking confirmation e-mail over SMTP."""

import html
import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr

from medibook.core import config
from medibook.scheduling.store import ConfirmationDetails

logger = logging.getLogger(__name__)


def build_confirmation_message(details: ConfirmationDetails) -> EmailMessage:
    booking_date = details.booking_date.isoformat()
    booking_time = details.booking_time.strftime('%H:%M')
    notice = f'{config.CANCELLATION_NOTICE_HOURS:g}'

    message = EmailMessage()
    message['Subject'] = 'Appointment Confirmed'
    message['From'] = formataddr((config.EMAIL_SENDER_NAME, config.EMAIL_FROM))
    message['To'] = details.patient_email
    message.set_content(
        f'Hi {details.patient},\n\n'
        'Your appointment has been successfully booked.\n\n'
        f'Service: {details.service}\n'
        f'Practitioner: {details.practitioner}\n'
        f'Date: {booking_date}\n'
        f'Time: {booking_time}\n\n'
        f'You may cancel your appointment up to {notice} hours before the scheduled time.\n\n'
        f'Thank you,\n{config.EMAIL_SENDER_NAME}\n'
    )
    patient = html.escape(details.patient, quote=True)
    service = html.escape(details.service, quote=True)
    practitioner = html.escape(details.practitioner, quote=True)
    sender = html.escape(config.EMAIL_SENDER_NAME, quote=True)
    message.add_alternative(
        f'<p>Hi <strong>{patient}</strong>,</p>'
        '<p>Your appointment has been successfully booked.</p>'
        '<ul>'
        f'<li><strong>Service:</strong> {service}</li>'
        f'<li><strong>Practitioner:</strong> {practitioner}</li>'
        f'<li><strong>Date:</strong> {booking_date}</li>'
        f'<li><strong>Time:</strong> {booking_time}</li>'
        '</ul>'
        f'<p>You may cancel your appointment up to <strong>{notice} hours</strong> before the scheduled time.</p>'
        f'<p>Thank you,<br>{sender}</p>',
        subtype='html',
    )
    return message


def send_booking_confirmation(details: ConfirmationDetails) -> bool:
    """Send the confirmation. Returns False when SMTP is not configured."""
    if not config.SMTP_HOST:
        logger.info('SMTP_HOST not set; skipping confirmation to %s', details.patient_email)
        return False

    message = build_confirmation_message(details)
    with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=config.SMTP_TIMEOUT_SECONDS) as server:
        if config.SMTP_USE_TLS:
            server.starttls(context=ssl.create_default_context())
        if config.SMTP_USER:
            server.login(config.SMTP_USER, config.SMTP_PASSWORD)
        server.send_message(message)

    logger.info('Confirmation sent to %s', details.patient_email)
    return True


def notify_booking_confirmed(details: ConfirmationDetails) -> None:
    """Fire-and-forget wrapper: a failed e-mail never fails the booking."""
    try:
        send_booking_confirmation(details)
    except Exception:
        logger.exception('Booking confirmation e-mail to %s failed', details.patient_email)

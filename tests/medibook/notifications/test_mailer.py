import logging
from dataclasses import replace
from datetime import date, time

import pytest

from medibook.core import config
from medibook.notifications import mailer
from medibook.scheduling.store import ConfirmationDetails

DETAILS = ConfirmationDetails(
    patient_email='pat@example.com',
    patient='Pat Patient',
    service='Physiotherapy',
    practitioner='Dr Adams',
    booking_date=date(2025, 6, 2),
    booking_time=time(10, 30),
)


class FakeSMTP:
    instances: list['FakeSMTP'] = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.started_tls = False
        self.logged_in_as = None
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self, context=None):
        self.started_tls = True

    def login(self, user, password):
        self.logged_in_as = user

    def send_message(self, message):
        self.sent.append(message)


@pytest.fixture(autouse=True)
def reset_fake_smtp() -> None:
    FakeSMTP.instances = []


def test_confirmation_message_contents(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'EMAIL_FROM', 'clinic@example.com')

    message = mailer.build_confirmation_message(DETAILS)

    assert message['To'] == 'pat@example.com'
    assert message['Subject'] == 'Appointment Confirmed'
    assert 'clinic@example.com' in message['From']
    text = message.get_body(preferencelist=('plain',)).get_content()
    assert 'Practitioner: Dr Adams' in text
    assert 'Date: 2025-06-02' in text
    assert 'Time: 10:30' in text
    assert 'up to 4 hours' in text
    assert message.get_body(preferencelist=('html',)) is not None


def test_send_skips_without_smtp_host(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'SMTP_HOST', '')
    monkeypatch.setattr(mailer.smtplib, 'SMTP', FakeSMTP)

    assert mailer.send_booking_confirmation(DETAILS) is False
    assert FakeSMTP.instances == []


def test_send_uses_tls_and_login(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'SMTP_HOST', 'smtp.example.com')
    monkeypatch.setattr(config, 'SMTP_PORT', 2525)
    monkeypatch.setattr(config, 'SMTP_USE_TLS', True)
    monkeypatch.setattr(config, 'SMTP_USER', 'mailer')
    monkeypatch.setattr(config, 'SMTP_PASSWORD', 'secret')
    monkeypatch.setattr(mailer.smtplib, 'SMTP', FakeSMTP)

    assert mailer.send_booking_confirmation(DETAILS) is True

    [server] = FakeSMTP.instances
    assert (server.host, server.port) == ('smtp.example.com', 2525)
    assert server.started_tls is True
    assert server.logged_in_as == 'mailer'
    assert len(server.sent) == 1


def test_notify_logs_and_swallows_failures(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    def broken_send(details):
        raise OSError('connection refused')

    monkeypatch.setattr(mailer, 'send_booking_confirmation', broken_send)

    with caplog.at_level(logging.ERROR, logger='medibook.notifications.mailer'):
        mailer.notify_booking_confirmed(DETAILS)

    assert 'Booking confirmation e-mail to pat@example.com failed' in caplog.text


def test_html_body_escapes_names() -> None:
    details = replace(DETAILS, patient='<script>alert(1)</script>', practitioner='Dr O\'Neil & Sons')

    message = mailer.build_confirmation_message(details)

    html_body = message.get_body(preferencelist=('html',)).get_content()
    assert '<script>' not in html_body
    assert '&lt;script&gt;alert(1)&lt;/script&gt;' in html_body
    assert 'Dr O&#x27;Neil &amp; Sons' in html_body
    text_body = message.get_body(preferencelist=('plain',)).get_content()
    assert 'Hi <script>alert(1)</script>,' in text_body

"""SMTP delivery of one-time verification codes."""

from __future__ import annotations

import logging
import smtplib
import socket
import ssl
import time
from email.message import EmailMessage
from typing import Any, Protocol

from inventory_auth.core.config import SmtpConfig

LOGGER = logging.getLogger(__name__)

BRAND = "Inventory Manager"


class NotificationDeliveryError(RuntimeError):
    """Raised when a code could not be handed to the mail relay."""


class CodeDispatcher(Protocol):
    """Out-of-band channel used by the login flow."""

    def send_verification_code(
        self, email: str, code: str, *, ttl_minutes: int
    ) -> None:
        """Deliver ``code`` to ``email`` or raise ``NotificationDeliveryError``."""


def _redact_email(email: str) -> str:
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


def build_verification_message(
    *, sender: str, recipient: str, code: str, ttl_minutes: int
) -> EmailMessage:
    """Compose the plain-text and HTML verification email."""
    message = EmailMessage()
    message["Subject"] = f"{BRAND} sign-in verification code"
    message["From"] = sender
    message["To"] = recipient
    message.set_content(
        f"Your {BRAND} verification code is {code}.\n\n"
        f"Enter this code within {ttl_minutes} minutes to finish signing in. "
        "If you didn't request a code, you can ignore this email."
    )
    message.add_alternative(
        f"""<!DOCTYPE html>
<html lang="en">
  <body style="margin:0;padding:24px 0;font-family:'Segoe UI',sans-serif;background:#f8fafc;color:#0f172a;">
    <div style="max-width:520px;margin:0 auto;background:#ffffff;border-radius:18px;padding:28px;">
      <p style="margin:0 0 12px;">Use the verification code below to finish signing in.
      This code expires in {ttl_minutes} minutes.</p>
      <div style="margin:24px 0;padding:22px;border-radius:12px;background:#eff6ff;font-size:28px;
                  font-weight:600;letter-spacing:0.4em;color:#1d4ed8;text-align:center;">{code}</div>
      <p style="margin:0;color:#475569;">If you did not request this code, please reset your
      password or contact your administrator.</p>
    </div>
  </body>
</html>""",
        subtype="html",
    )
    return message


class EmailDispatcher:
    """Send verification codes through SMTP with bounded timeouts.

    Connecting (including the server greeting) is bounded by
    ``connection_timeout_seconds``; every later socket operation by
    ``socket_timeout_seconds``. Without a configured host, development builds
    log the code instead of sending it and production builds fail delivery.
    """

    def __init__(self, config: SmtpConfig, *, is_production: bool) -> None:
        self._config = config
        self._is_production = is_production

    @property
    def is_configured(self) -> bool:
        return self._config.is_configured

    def _ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self._config.verify_tls:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _connect(self) -> smtplib.SMTP:
        config = self._config
        server: smtplib.SMTP
        if config.secure:
            server = smtplib.SMTP_SSL(
                config.host,
                config.port,
                timeout=config.connection_timeout_seconds,
                context=self._ssl_context(),
            )
        else:
            server = smtplib.SMTP(
                config.host, config.port, timeout=config.connection_timeout_seconds
            )
        try:
            if server.sock is not None:
                server.sock.settimeout(config.socket_timeout_seconds)
            if not config.secure:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls(context=self._ssl_context())
                    server.ehlo()
            if config.user and config.password:
                server.login(config.user, config.password)
        except BaseException:
            server.close()
            raise
        return server

    def send_verification_code(
        self, email: str, code: str, *, ttl_minutes: int
    ) -> None:
        if not self.is_configured:
            if self._is_production:
                raise NotificationDeliveryError("SMTP transport is not configured")
            LOGGER.info("two_factor_code_dev_mode: %s code=%s", _redact_email(email), code)
            return

        message = build_verification_message(
            sender=self._config.from_address or self._config.user,
            recipient=email,
            code=code,
            ttl_minutes=ttl_minutes,
        )
        try:
            server = self._connect()
            try:
                server.send_message(message)
            finally:
                try:
                    server.quit()
                except (smtplib.SMTPException, OSError):
                    server.close()
        except (smtplib.SMTPException, OSError) as exc:
            # socket.timeout is an OSError subclass.
            LOGGER.error(
                "verification_email_failed: %s %s: %s",
                _redact_email(email),
                type(exc).__name__,
                exc,
            )
            raise NotificationDeliveryError(str(exc) or type(exc).__name__) from exc

        LOGGER.info("verification_email_sent: %s", _redact_email(email))

    def check_connection(self) -> dict[str, Any]:
        """Open and close a relay connection, reporting the outcome."""
        if not self.is_configured:
            return {"configured": False, "status": "not_configured"}
        try:
            server = self._connect()
            try:
                server.noop()
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError) as exc:
            LOGGER.warning("smtp_check_failed: %s", type(exc).__name__)
            return {"configured": True, "status": "error", "error": type(exc).__name__}
        return {"configured": True, "status": "ok"}

    def diagnose_connection(self) -> dict[str, Any]:
        """Time DNS resolution, a raw TCP connect and the SMTP handshake."""
        config = self._config
        if not config.host:
            return {"error": "SMTP_HOST not set"}

        result: dict[str, Any] = {
            "host": config.host,
            "port": config.port,
            "secure": config.secure,
        }
        try:
            started = time.monotonic()
            infos = socket.getaddrinfo(config.host, config.port, type=socket.SOCK_STREAM)
            result["dns_ms"] = int((time.monotonic() - started) * 1000)
            addresses = list(dict.fromkeys(info[4][0] for info in infos))
            result["addresses"] = addresses

            started = time.monotonic()
            connection = socket.create_connection(
                (addresses[0] if addresses else config.host, config.port),
                timeout=config.connection_timeout_seconds,
            )
            connection.close()
            result["connect_ms"] = int((time.monotonic() - started) * 1000)
        except OSError as exc:
            LOGGER.warning("smtp_diagnostics_failed: %s", type(exc).__name__)
            result["error"] = str(exc) or type(exc).__name__
            return result

        started = time.monotonic()
        check = self.check_connection()
        result["verify_ms"] = int((time.monotonic() - started) * 1000)
        result["verify_status"] = check["status"]
        if "error" in check:
            result["verify_error"] = check["error"]
        return result

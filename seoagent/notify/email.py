"""SMTP delivery of the run summary."""

from __future__ import annotations

import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..errors import ExternalServiceError
from ..logging import get_logger

_TEMPLATES_DIR = Path(__file__).parent / "templates"

SmtpFactory = Callable[[str, int], Any]


class EmailSender:
    """Sends HTML mail through an SMTP relay using STARTTLS when enabled."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        smtp_factory: SmtpFactory | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._smtp_factory = smtp_factory or smtplib.SMTP
        self.logger = get_logger("notify.email")

    def send(self, sender: str, recipients: Sequence[str], subject: str, html: str) -> None:
        if not recipients:
            self.logger.debug("No recipients configured; not sending %r", subject)
            return
        message = MIMEMultipart("alternative")
        message["From"] = sender
        message["To"] = ", ".join(recipients)
        message["Subject"] = subject
        message.attach(MIMEText(html, "html", "utf-8"))

        try:
            with self._smtp_factory(self.host, self.port) as server:
                if self._use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self._username and self._password:
                    server.login(self._username, self._password)
                server.sendmail(sender, list(recipients), message.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            raise ExternalServiceError(f"Failed to send email via {self.host}: {exc}") from exc
        self.logger.info("Sent %r to %d recipients", subject, len(recipients))


def render_summary(started_at: str, outcomes: Iterable[Any], impact: Iterable[Any] = ()) -> str:
    """Render the HTML run summary for ``outcomes`` and measured ``impact``."""
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "j2"]),
    )
    outcomes = list(outcomes)
    return env.get_template("summary.html.j2").render(
        started_at=started_at,
        outcomes=outcomes,
        total_changes=sum(len(outcome.changes) for outcome in outcomes),
        impact=list(impact),
    )


__all__ = ["EmailSender", "render_summary"]

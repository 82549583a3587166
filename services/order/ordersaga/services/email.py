import logging
import queue
import smtplib
import threading
from dataclasses import dataclass
from email.mime.text import MIMEText
from typing import Callable, Optional

from ordersaga.core.config import settings

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    body: str
    html: bool = True

def send_email(message: EmailMessage):
    msg = MIMEText(message.body, "html" if message.html else "plain", "utf-8")
    msg["Subject"] = message.subject
    msg["From"] = settings.FROM_EMAIL
    msg["To"] = message.to
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as s:
        s.sendmail(settings.FROM_EMAIL, [message.to], msg.as_string())

_STOP = object()

class EmailQueue:
    """Outgoing mail drained by one background worker; enqueue never blocks on SMTP."""

    def __init__(self, sender: Callable[[EmailMessage], None] = send_email):
        self._sender = sender
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def enqueue(self, message: EmailMessage):
        self._queue.put(message)
        logger.debug("email to %s queued (%s)", message.to, message.subject)

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="email-queue", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0):
        if not (self._thread and self._thread.is_alive()):
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)

    def drain(self):
        """Block until every queued message has been handled."""
        self._queue.join()

    def _run(self):
        logger.info("email worker started")
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    break
                logger.info("sending email to %s", item.to)
                self._sender(item)
            except Exception:
                # one bad message must not kill the worker
                logger.exception("failed to send email")
            finally:
                self._queue.task_done()
        logger.info("email worker stopped")

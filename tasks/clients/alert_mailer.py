import logging
import threading
import time
from typing import Optional

from django.conf import settings
from django.core.mail import EmailMessage, get_connection

logger = logging.getLogger(__name__)


class AlertMailer:
    """
    Process-wide outbound mail connection for operator alerts.

    The connection is opened on first send and reused afterwards. A failed
    send closes it so the next attempt reconnects. After ``max_retries``
    attempts with exponential backoff the message goes to the fallback
    backend; if that fails too the alert is logged and dropped.
    """

    def __init__(self,
                 backend: Optional[str] = None,
                 fallback_backend: Optional[str] = None,
                 max_retries: Optional[int] = None,
                 backoff_factor: Optional[int] = None,
                 retry_delay: Optional[float] = None):
        self.backend = backend or settings.EMAIL_BACKEND
        self.fallback_backend = fallback_backend or settings.ALERT_FALLBACK_EMAIL_BACKEND
        self.max_retries = max_retries if max_retries is not None else settings.ALERT_MAX_RETRIES
        self.backoff_factor = backoff_factor if backoff_factor is not None else settings.ALERT_BACKOFF_FACTOR
        self.retry_delay = retry_delay if retry_delay is not None else settings.ALERT_RETRY_DELAY_SECONDS
        self._connection = None
        self._lock = threading.Lock()

    def _get_connection(self):
        if self._connection is None:
            self._connection = get_connection(backend=self.backend, fail_silently=False)
            self._connection.open()
        return self._connection

    def _reset_connection(self):
        if self._connection is None:
            return
        try:
            self._connection.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing alert mail connection: {e}")
        self._connection = None

    def close(self):
        with self._lock:
            self._reset_connection()

    def send(self, message: EmailMessage) -> bool:
        """Deliver ``message``; returns False when every route failed."""
        with self._lock:
            for attempt in range(self.max_retries):
                try:
                    self._get_connection().send_messages([message])
                    logger.info(f"Alert mail sent to {', '.join(message.to)}")
                    return True
                except Exception as e:
                    # SMTP, socket and provider SDK errors share no common base
                    logger.error(f"Alert mail attempt {attempt + 1}/{self.max_retries} failed: {e}")
                    self._reset_connection()
                    if attempt < self.max_retries - 1:
                        sleep_time = self.retry_delay * (self.backoff_factor ** attempt)
                        logger.info(f"Retrying alert mail in {sleep_time:.2f} seconds...")
                        time.sleep(sleep_time)

            logger.warning(f"Primary mail backend exhausted; using fallback {self.fallback_backend}")
            try:
                fallback = get_connection(backend=self.fallback_backend, fail_silently=False)
                fallback.send_messages([message])
                return True
            except Exception as e:
                logger.error(f"Fallback alert delivery failed, dropping alert: {e}", exc_info=True)
                return False

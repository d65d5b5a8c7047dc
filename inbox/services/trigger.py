"""
Mail-driven entry point into the task pipeline.

A notification (Gmail push, the polling command) schedules a mailbox poll on
a single background worker. Each unseen message is routed by subject:

- "tasksheet" in the subject: every Excel attachment is imported as tasks
- "invoicesheet": every Excel attachment is reconciled into assigned tasks,
  then one missing-invoice alert scan runs

Duplicate delivery is absorbed by the importer and reconciler being
idempotent; the in-flight registry only stops this process from handling
the same message twice at once.
"""
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional, Set

from django.conf import settings
from django.db import close_old_connections

from dispatch_core.exceptions import DispatchError
from inbox.clients.imap_client import InboundMessage
from tasks.services.spreadsheet import is_spreadsheet_filename

logger = logging.getLogger(__name__)

ROUTE_TASKS = 'tasks'
ROUTE_INVOICES = 'invoices'


class InFlightRegistry:
    """Bounded, thread-safe set of message ids currently being processed."""

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit or settings.MAILBOX_IN_FLIGHT_LIMIT
        self._ids: Set[str] = set()
        self._lock = threading.Lock()

    def claim(self, message_id: str) -> bool:
        with self._lock:
            if message_id in self._ids:
                return False
            if len(self._ids) >= self.limit:
                logger.warning(f"In-flight registry full ({self.limit}); deferring message {message_id}.")
                return False
            self._ids.add(message_id)
            return True

    def release(self, message_id: str):
        with self._lock:
            self._ids.discard(message_id)

    def __contains__(self, message_id):
        with self._lock:
            return message_id in self._ids

    def __len__(self):
        with self._lock:
            return len(self._ids)


def _default_importer(content: bytes):
    from tasks.services.task_importer import import_task_sheet
    return import_task_sheet(content)


def _default_reconciler(content: bytes):
    from tasks.services.invoice_reconciler import reconcile_invoice_sheet
    return reconcile_invoice_sheet(content)


def _default_alert_scan():
    from tasks.services.invoice_alerts import run_missing_invoice_scan
    return run_missing_invoice_scan()


class MailboxTrigger:

    def __init__(self,
                 mailbox=None,
                 importer: Callable = None,
                 reconciler: Callable = None,
                 alert_scan: Callable = None,
                 registry: Optional[InFlightRegistry] = None,
                 task_keyword: Optional[str] = None,
                 invoice_keyword: Optional[str] = None):
        if mailbox is None:
            from inbox.clients.imap_client import ImapMailbox
            mailbox = ImapMailbox()
        self.mailbox = mailbox
        self.importer = importer or _default_importer
        self.reconciler = reconciler or _default_reconciler
        self.alert_scan = alert_scan or _default_alert_scan
        self.registry = registry or InFlightRegistry()
        self.task_keyword = (task_keyword or settings.TASK_SHEET_KEYWORD).lower()
        self.invoice_keyword = (invoice_keyword or settings.INVOICE_SHEET_KEYWORD).lower()

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='mailbox-trigger')
        self._state_lock = threading.Lock()
        self._polling = False
        self._poll_requested = False

    def notify(self) -> Optional[Future]:
        """
        Schedule a poll and return immediately. While a poll is running,
        further notifications collapse into a single follow-up poll.
        """
        with self._state_lock:
            if self._polling:
                self._poll_requested = True
                logger.debug("Poll already running; follow-up poll requested.")
                return None
            self._polling = True
        return self._executor.submit(self._run_polls)

    def _run_polls(self):
        while True:
            try:
                self.poll_once()
            except Exception as e:
                # The worker must survive any failure so later notifications still poll
                logger.error(f"Mailbox poll failed: {e}", exc_info=True)
            finally:
                close_old_connections()

            with self._state_lock:
                if self._poll_requested:
                    self._poll_requested = False
                    continue
                self._polling = False
                return

    def poll_once(self) -> int:
        """Fetch unseen mail, process it and flag it seen. Returns messages handled."""
        handled = 0
        try:
            for message in self.mailbox.fetch_unseen():
                if not self.registry.claim(message.uid):
                    logger.info(f"Message {message.uid} already in flight; skipping.")
                    continue
                try:
                    self.process_message(message)
                    self.mailbox.mark_seen(message.uid)
                    handled += 1
                except DispatchError as e:
                    logger.error(f"Message {message.uid} left unseen: {e.message}")
                finally:
                    self.registry.release(message.uid)
        finally:
            self.mailbox.close()
        return handled

    def route_for(self, subject: str) -> Optional[str]:
        subject = (subject or '').lower()
        if self.task_keyword in subject:
            return ROUTE_TASKS
        if self.invoice_keyword in subject:
            return ROUTE_INVOICES
        return None

    def process_message(self, message: InboundMessage) -> Optional[str]:
        route = self.route_for(message.subject)
        logger.info(f"Message {message.uid} subject={message.subject!r} route={route}")
        if route is None:
            return None

        sheets = [a for a in message.attachments if is_spreadsheet_filename(a.filename)]
        if not sheets:
            logger.info(f"Message {message.uid} has no spreadsheet attachments.")
            return route

        handler = self.importer if route == ROUTE_TASKS else self.reconciler
        for attachment in sheets:
            try:
                result = handler(attachment.content)
                logger.info(f"{route} attachment {attachment.filename} processed: {result}")
            except Exception as e:
                logger.error(f"{route} attachment {attachment.filename} failed: {e}", exc_info=True)

        if route == ROUTE_INVOICES:
            self.alert_scan()
        return route

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)


def start_mailbox_watcher(trigger: MailboxTrigger, interval: Optional[int] = None):
    """Poll on a fixed interval until interrupted."""
    interval = interval or settings.MAILBOX_POLL_INTERVAL_SECONDS
    logger.info(f"Watching mailbox every {interval}s")
    try:
        while True:
            future = trigger.notify()
            if future is not None:
                future.result()
            time.sleep(interval)
    except KeyboardInterrupt:
        logger.info("Mailbox watcher stopped")
    finally:
        trigger.shutdown(wait=False)


def run_poll_once(trigger: MailboxTrigger) -> int:
    try:
        return trigger.poll_once()
    finally:
        close_old_connections()

import logging
from typing import List, Optional

import pandas as pd
from django.apps import apps
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.db import DatabaseError
from django.db.models import Q
from django.utils import timezone
from django.utils.html import escape

from tasks.models import AssignedTask

logger = logging.getLogger(__name__)

ALERT_COLUMNS = [
    'id', 'order_number', 'driver_name', 'truck_no', 'route_code',
    'suburb_town', 'status', 'assigned_at',
]


class MissingInvoiceAlertScan:
    """Emails the operator a list of assigned tasks that still have no invoice number."""

    def __init__(self, mailer=None, limit: Optional[int] = None):
        self.mailer = mailer or apps.get_app_config('tasks').alert_mailer
        self.limit = limit or settings.ALERT_SCAN_LIMIT

    def find_missing(self) -> List[AssignedTask]:
        qs = AssignedTask.objects.filter(Q(invoice_id__isnull=True) | Q(invoice_id=''))
        return list(qs.order_by('assigned_at')[:self.limit])

    def build_message(self, rows: List[AssignedTask]) -> EmailMultiAlternatives:
        frame = pd.DataFrame.from_records(
            [{column: getattr(row, column) for column in ALERT_COLUMNS} for row in rows],
            columns=ALERT_COLUMNS,
        )
        orders = ", ".join(str(n) for n in frame['order_number'].drop_duplicates().tolist())
        text = (
            f"{len(rows)} assigned task(s) have no invoice number.\n"
            f"Orders: {orders}\n"
            f"The attached CSV lists the affected rows."
        )
        html = (
            f"<p><strong>{len(rows)}</strong> assigned task(s) have no invoice number.</p>"
            f"<p>Orders: {escape(orders)}</p>"
            f"<p>The attached CSV lists the affected rows.</p>"
        )

        message = EmailMultiAlternatives(
            subject=settings.ALERT_EMAIL_SUBJECT,
            body=text,
            from_email=settings.ALERT_EMAIL_FROM,
            to=[address.strip() for address in settings.ALERT_EMAIL_TO.split(',') if address.strip()],
        )
        message.attach_alternative(html, 'text/html')
        filename = f"missing_invoices_{timezone.localtime():%Y%m%d_%H%M%S}.csv"
        message.attach(filename, frame.to_csv(index=False), 'text/csv')
        return message

    def run(self) -> int:
        """
        Returns the number of rows reported. Errors are logged, never raised,
        so callers in the task pipeline are not interrupted.
        """
        try:
            rows = self.find_missing()
        except DatabaseError as e:
            logger.error(f"Missing invoice scan query failed: {e}", exc_info=True)
            return 0

        if not rows:
            logger.info("Missing invoice scan: every assigned task has an invoice number.")
            return 0

        if not settings.ALERT_EMAIL_TO:
            logger.warning(f"{len(rows)} assigned tasks lack invoices but ALERT_EMAIL_TO is not set.")
            return len(rows)

        try:
            message = self.build_message(rows)
        except (ValueError, TypeError) as e:
            logger.error(f"Could not build missing invoice alert: {e}", exc_info=True)
            return len(rows)

        self.mailer.send(message)
        return len(rows)


def run_missing_invoice_scan(mailer=None) -> int:
    return MissingInvoiceAlertScan(mailer=mailer).run()

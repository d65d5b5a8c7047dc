import email
import imaplib
import logging
from dataclasses import dataclass, field
from email import policy
from typing import List, Optional

from django.conf import settings

from dispatch_core.exceptions import UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class Attachment:
    filename: str
    content: bytes


@dataclass
class InboundMessage:
    uid: str
    subject: str
    attachments: List[Attachment] = field(default_factory=list)


def parse_message(uid: str, raw: bytes) -> InboundMessage:
    message = email.message_from_bytes(raw, policy=policy.default)
    attachments = []
    for part in message.iter_attachments():
        filename = part.get_filename()
        if not filename:
            continue
        payload = part.get_payload(decode=True) or b''
        attachments.append(Attachment(filename=filename, content=payload))
    return InboundMessage(uid=uid, subject=str(message.get('Subject', '') or ''), attachments=attachments)


class ImapMailbox:
    """
    Reads unseen messages over IMAP and flags them seen once handled.

    Messages are fetched with BODY.PEEK so a crash mid-poll leaves them
    unseen for the next poll. The connection is opened lazily and kept
    until close().
    """

    def __init__(self,
                 host: Optional[str] = None,
                 port: Optional[int] = None,
                 user: Optional[str] = None,
                 password: Optional[str] = None,
                 folder: Optional[str] = None):
        self.host = host or settings.IMAP_HOST
        self.port = port or settings.IMAP_PORT
        self.user = user or settings.GMAIL_USER
        self.password = password or settings.GMAIL_APP_PASSWORD
        self.folder = folder or settings.MAILBOX_FOLDER
        self._conn = None

    def _connection(self):
        if self._conn is None:
            if not self.user or not self.password:
                raise UpstreamError("GMAIL_USER and GMAIL_APP_PASSWORD must be set to read the mailbox")
            try:
                conn = imaplib.IMAP4_SSL(self.host, self.port)
                conn.login(self.user, self.password)
                conn.select(self.folder)
            except (imaplib.IMAP4.error, OSError) as e:
                raise UpstreamError(f"Could not open mailbox {self.user}@{self.host}", details=str(e))
            logger.info(f"Connected to mailbox {self.user} ({self.folder})")
            self._conn = conn
        return self._conn

    def fetch_unseen(self) -> List[InboundMessage]:
        conn = self._connection()
        try:
            status, data = conn.uid('search', None, 'UNSEEN')
            if status != 'OK':
                raise UpstreamError(f"IMAP search failed: {status}")
            uids = data[0].split() if data and data[0] else []

            messages = []
            for raw_uid in uids:
                uid = raw_uid.decode()
                status, parts = conn.uid('fetch', uid, '(BODY.PEEK[])')
                if status != 'OK' or not parts or not isinstance(parts[0], tuple):
                    logger.warning(f"Could not fetch message {uid}: {status}")
                    continue
                messages.append(parse_message(uid, parts[0][1]))
        except (imaplib.IMAP4.error, OSError) as e:
            self.close()
            raise UpstreamError("IMAP fetch failed", details=str(e))

        if messages:
            logger.info(f"{len(messages)} unseen message(s) in {self.folder}")
        return messages

    def mark_seen(self, uid: str):
        try:
            self._connection().uid('store', uid, '+FLAGS', '(\\Seen)')
        except (imaplib.IMAP4.error, OSError) as e:
            self.close()
            raise UpstreamError(f"Could not flag message {uid} as seen", details=str(e))

    def close(self):
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            conn.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            logger.debug(f"Ignoring IMAP logout error: {e}")

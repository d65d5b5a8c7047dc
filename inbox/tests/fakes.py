import threading

from inbox.clients.imap_client import Attachment, InboundMessage


class FakeMailbox:
    """In-memory stand-in for ImapMailbox."""

    def __init__(self, messages=None):
        self.messages = list(messages or [])
        self.seen = []
        self.fetches = 0
        self.closed = 0

    def fetch_unseen(self):
        self.fetches += 1
        return [m for m in self.messages if m.uid not in self.seen]

    def mark_seen(self, uid):
        self.seen.append(uid)

    def close(self):
        self.closed += 1


class BlockingMailbox(FakeMailbox):
    """Holds the first fetch open until released."""

    def __init__(self, messages=None):
        super().__init__(messages)
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch_unseen(self):
        if self.fetches == 0:
            self.fetches += 1
            self.entered.set()
            self.release.wait(timeout=5)
            return []
        return super().fetch_unseen()


def sheet(filename="sheet.xlsx", content=b"xlsx-bytes"):
    return Attachment(filename=filename, content=content)


def message(uid, subject, *attachments):
    return InboundMessage(uid=uid, subject=subject, attachments=list(attachments))

import imaplib
from email.message import EmailMessage
from unittest.mock import patch, MagicMock

from django.test import SimpleTestCase, override_settings

from dispatch_core.exceptions import UpstreamError
from inbox.clients.imap_client import ImapMailbox, parse_message


def raw_email(subject="tasksheet", attachments=()):
    msg = EmailMessage()
    msg['Subject'] = subject
    msg['From'] = 'ops@example.com'
    msg['To'] = 'dispatch@example.com'
    msg.set_content("See attached.")
    for filename, content in attachments:
        msg.add_attachment(content, maintype='application', subtype='octet-stream', filename=filename)
    return msg.as_bytes()


class ParseMessageTestCase(SimpleTestCase):

    def test_extracts_subject_and_attachments(self):
        parsed = parse_message("42", raw_email("Tasksheet 19 Oct", [("tasks.xlsx", b"PK\x03\x04data")]))

        self.assertEqual(parsed.uid, "42")
        self.assertEqual(parsed.subject, "Tasksheet 19 Oct")
        self.assertEqual(len(parsed.attachments), 1)
        self.assertEqual(parsed.attachments[0].filename, "tasks.xlsx")
        self.assertEqual(parsed.attachments[0].content, b"PK\x03\x04data")

    def test_message_without_attachments(self):
        parsed = parse_message("1", raw_email("hello"))
        self.assertEqual(parsed.attachments, [])


@override_settings(GMAIL_USER='dispatch@example.com', GMAIL_APP_PASSWORD='app-password')
class ImapMailboxTestCase(SimpleTestCase):

    def connection(self):
        conn = MagicMock()

        def uid(command, *args):
            if command == 'search':
                return 'OK', [b'3 4']
            if command == 'fetch':
                return 'OK', [(b'header', raw_email(attachments=[("t.xlsx", b"x")])), b')']
            return 'OK', [None]

        conn.uid.side_effect = uid
        return conn

    @patch('inbox.clients.imap_client.imaplib.IMAP4_SSL')
    def test_fetch_unseen_peeks(self, mock_ssl):
        conn = self.connection()
        mock_ssl.return_value = conn

        messages = ImapMailbox().fetch_unseen()

        self.assertEqual([m.uid for m in messages], ["3", "4"])
        conn.login.assert_called_once_with('dispatch@example.com', 'app-password')
        conn.select.assert_called_once_with('INBOX')
        conn.uid.assert_any_call('fetch', '3', '(BODY.PEEK[])')

    @patch('inbox.clients.imap_client.imaplib.IMAP4_SSL')
    def test_mark_seen_and_close(self, mock_ssl):
        conn = self.connection()
        mock_ssl.return_value = conn
        mailbox = ImapMailbox()

        mailbox.mark_seen("3")
        conn.uid.assert_called_with('store', '3', '+FLAGS', '(\\Seen)')

        mailbox.close()
        conn.logout.assert_called_once()
        mailbox.close()
        conn.logout.assert_called_once()

    @patch('inbox.clients.imap_client.imaplib.IMAP4_SSL')
    def test_login_failure(self, mock_ssl):
        mock_ssl.return_value.login.side_effect = imaplib.IMAP4.error("AUTHENTICATIONFAILED")
        with self.assertRaises(UpstreamError):
            ImapMailbox().fetch_unseen()

    @override_settings(GMAIL_USER=None, GMAIL_APP_PASSWORD=None)
    @patch('inbox.clients.imap_client.imaplib.IMAP4_SSL')
    def test_missing_credentials(self, mock_ssl):
        with self.assertRaises(UpstreamError):
            ImapMailbox().fetch_unseen()
        mock_ssl.assert_not_called()

from django.apps import AppConfig


class InboxConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'inbox'
    verbose_name = 'Mailbox Automation'

    def ready(self):
        """
        Own the process-wide mailbox trigger. Building it does not connect
        to the mailbox or start a thread; both happen on the first notify().
        """
        from inbox.services.trigger import MailboxTrigger
        self.trigger = MailboxTrigger()

from django.apps import apps
from django.core.management.base import BaseCommand, CommandError

from dispatch_core.exceptions import UpstreamError
from inbox.services.trigger import start_mailbox_watcher, run_poll_once


class Command(BaseCommand):
    help = 'Poll the dispatch mailbox for task and invoice spreadsheets'

    def add_arguments(self, parser):
        parser.add_argument('--once', action='store_true', help='Poll a single time and exit')
        parser.add_argument('--interval', type=int, default=None, help='Seconds between polls')

    def handle(self, *args, **options):
        trigger = apps.get_app_config('inbox').trigger
        if options['once']:
            try:
                handled = run_poll_once(trigger)
            except UpstreamError as e:
                raise CommandError(f"Mailbox poll failed: {e.message}")
            self.stdout.write(self.style.SUCCESS(f'Processed {handled} message(s).'))
            return

        self.stdout.write(self.style.SUCCESS('Starting mailbox watcher...'))
        start_mailbox_watcher(trigger, interval=options['interval'])

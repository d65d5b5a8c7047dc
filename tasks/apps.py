from django.apps import AppConfig


class TasksConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tasks'
    verbose_name = 'Delivery Tasks'

    def ready(self):
        """
        Own the process-wide alert mail connection. It opens on first use and
        is handed to every missing-invoice scan.
        """
        from tasks.clients.alert_mailer import AlertMailer
        self.alert_mailer = AlertMailer()

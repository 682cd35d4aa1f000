"""
https://python-dependency-injector.ets-labs.org/index.html
https://python-dependency-injector.ets-labs.org/examples/fastapi.html
"""

from dependency_injector import containers, providers

from src.platform.config.core_setting import Settings
from src.platform.state.kv_store import KvStore
from src.service.booking.driven_adapter.notification.booking_notification_trigger_impl import (
    BookingNotificationTriggerImpl,
)
from src.service.booking.driven_adapter.notification.mock_email_sender_impl import (
    MockEmailSenderImpl,
)
from src.service.booking.driven_adapter.notification.resend_email_sender_impl import (
    ResendEmailSenderImpl,
)
from src.service.booking.driven_adapter.state.booking_repo_impl import BookingRepoImpl
from src.service.booking.driving_adapter.http_controller.auth.admin_auth import AdminJwtAuth


def _select_email_sender(config: Settings) -> str:
    # No API key -> log-only sender (local dev, tests)
    return 'resend' if config.RESEND_API_KEY.get_secret_value() else 'mock'


class Container(containers.DeclarativeContainer):
    # Configuration
    config_service = providers.Singleton(Settings)

    # Background task group (set by main.py lifespan)
    # Used for fire-and-forget tasks like confirmation emails
    background_task_group = providers.Object(None)

    # Key-value store (client resolved per call from the kvrocks_client singleton)
    kv_store = providers.Singleton(KvStore)

    # Repositories
    booking_repo = providers.Singleton(
        BookingRepoImpl,
        kv_store=kv_store,
        reservation_mode=config_service.provided.SLOT_RESERVATION_MODE,
    )

    # Notification
    notification_sender = providers.Selector(
        providers.Callable(_select_email_sender, config_service),
        resend=providers.Singleton(
            ResendEmailSenderImpl,
            api_key=config_service.provided.RESEND_API_KEY.get_secret_value.call(),
            api_url=config_service.provided.EMAIL_API_URL,
            sender=config_service.provided.EMAIL_FROM,
            subject=config_service.provided.EMAIL_SUBJECT,
            timeout_seconds=config_service.provided.EMAIL_TIMEOUT_SECONDS,
        ),
        mock=providers.Singleton(
            MockEmailSenderImpl, subject=config_service.provided.EMAIL_SUBJECT
        ),
    )
    notification_trigger = providers.Singleton(
        BookingNotificationTriggerImpl,
        sender=notification_sender,
        task_group=background_task_group,
    )

    # Auth service
    admin_auth = providers.Singleton(AdminJwtAuth)


container = Container()


def cleanup() -> None:
    container.reset_singletons()

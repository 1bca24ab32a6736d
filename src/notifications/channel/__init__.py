"""Channel adapter registry: pluggable notification dispatch channels.

Provides singleton access to channel adapters. The fake email adapter is
used unless ``configure_channels`` installs a real one.
"""

from notifications.notification.notification import NotificationChannel
from shared.config import NotificationSettings

_channel_instances: dict[str, object] = {}


def get_channel(channel_type: str):
    """Return the configured channel adapter (singleton per channel type)."""
    if channel_type not in _channel_instances:
        if channel_type == NotificationChannel.EMAIL.value:
            from notifications.channel.fake_email import FakeEmailAdapter

            _channel_instances[channel_type] = FakeEmailAdapter()
        else:
            raise ValueError(f"Unknown channel type: {channel_type}")

    return _channel_instances[channel_type]


def set_channel(channel_type: str, adapter) -> None:
    _channel_instances[channel_type] = adapter


def configure_channels(settings: NotificationSettings) -> None:
    if settings.email_adapter == "smtp":
        from notifications.channel.smtp_email import SMTPEmailAdapter

        set_channel(
            NotificationChannel.EMAIL.value,
            SMTPEmailAdapter(host=settings.smtp_host, port=settings.smtp_port, sender=settings.sender),
        )
    elif settings.email_adapter == "fake":
        from notifications.channel.fake_email import FakeEmailAdapter

        set_channel(NotificationChannel.EMAIL.value, FakeEmailAdapter())
    else:
        raise ValueError(f"Unknown email adapter: {settings.email_adapter}")


def reset_channels():
    """Reset all channel singletons (useful for testing)."""
    _channel_instances.clear()

import logging

from questApp.models import ProgressionEvent

logger = logging.getLogger(__name__)


def record_event(user, event_type, **event_data):
    logger.info("progression event %s user=%s %s", event_type, user.pk, event_data)
    return ProgressionEvent.objects.create(
        user=user,
        event_type=event_type,
        event_data=event_data,
    )

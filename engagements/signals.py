import logging

from django.conf import settings
from django.db import transaction
from django.db.models.signals import post_save, pre_delete
from django.dispatch import receiver

from core.models import Invoice

from .models import Engagement

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Engagement)
def generate_work_on_engagement_create(sender, instance, created, raw, **kwargs):
    if raw or not created:
        return
    if not getattr(settings, "ENGAGEMENT_AUTO_GENERATE", True):
        return

    from .services.generator import generate_for_engagement

    try:
        with transaction.atomic():
            generate_for_engagement(instance)
    except Exception:
        logger.exception("Initial period generation failed for engagement %s", instance.pk)


# Runs before the delete so the period and engagement links are still in place.
@receiver(pre_delete, sender=Invoice)
def release_work_on_invoice_delete(sender, instance, **kwargs):
    from .services.invoicing import release_deleted_invoice

    release_deleted_invoice(instance)

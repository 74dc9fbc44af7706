from django.db.models.signals import post_save
from django.dispatch import receiver

from apps.core.leads.models import Lead

from .models import EnrolledClient
from .services import create_enrolled_client


@receiver(post_save, sender=Lead)
def open_enrollment_for_enrolled_lead(sender, instance: Lead, raw=False, **kwargs):
    if raw or not instance.is_enrolled:
        return
    if EnrolledClient.objects.filter(lead=instance).exists():
        return

    create_enrolled_client(lead=instance)

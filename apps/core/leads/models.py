from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class Lead(models.Model):
    STATUS_NEW = 'New'
    STATUS_CONTACTED = 'Contacted'
    STATUS_FOLLOW_UP = 'Follow Up'
    STATUS_ENROLLED = 'Enrolled'
    STATUS_NOT_INTERESTED = 'Not Interested'
    STATUS_CLOSED = 'Closed'
    STATUS_CHOICES = (
        (STATUS_NEW, 'New'),
        (STATUS_CONTACTED, 'Contacted'),
        (STATUS_FOLLOW_UP, 'Follow Up'),
        (STATUS_ENROLLED, 'Enrolled'),
        (STATUS_NOT_INTERESTED, 'Not Interested'),
        (STATUS_CLOSED, 'Closed'),
    )

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True)
    primary_email = models.EmailField(blank=True)
    primary_contact = models.CharField(max_length=30, blank=True)
    technology = models.CharField(max_length=120, blank=True)
    country = models.CharField(max_length=60, blank=True)
    visa_status = models.CharField(max_length=30, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_NEW)
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_leads',
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_leads',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['status'], name='leads_lead_status_idx'),
            models.Index(fields=['assigned_to', 'status'], name='leads_lead_assignee_idx'),
        ]

    def clean(self):
        super().clean()
        if self.first_name:
            self.first_name = self.first_name.strip()
        if not self.first_name:
            raise ValidationError({'first_name': 'First name is required.'})

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_enrolled(self):
        return self.status == self.STATUS_ENROLLED

    def __str__(self):
        return f"{self.full_name} ({self.status})"

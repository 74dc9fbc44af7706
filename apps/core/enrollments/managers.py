from django.db import models
from django.db.models import Q


class EnrolledClientQuerySet(models.QuerySet):
    def locked(self, pk):
        return self.select_for_update().get(pk=pk)

    def in_state(self, phase, state):
        return self.filter(phase.state_filter(state))

    def visible_to(self, user):
        if user.is_reviewer:
            return self
        return self.filter(Q(sales_person=user) | Q(lead__assigned_to=user)).distinct()


class EnrolledClientManager(models.Manager):
    def get_queryset(self):
        return EnrolledClientQuerySet(self.model, using=self._db)

    def locked(self, pk):
        return self.get_queryset().locked(pk)

    def visible_to(self, user):
        return self.get_queryset().visible_to(user)


class InstallmentQuerySet(models.QuerySet):
    def for_charge(self, enrolled_client, charge_type):
        return self.filter(enrolled_client=enrolled_client, charge_type=charge_type)

    def initial(self):
        return self.filter(installment_number=0, is_initial_payment=True)

    def awaiting_sales(self):
        return self.filter(has_admin_update=True, sales_approval=False)

    def with_payment_status(self, status):
        if status == 'paid':
            return self.filter(paid=True)
        if status == 'unpaid':
            return self.filter(paid=False)
        return self


class InstallmentManager(models.Manager):
    def get_queryset(self):
        return InstallmentQuerySet(self.model, using=self._db)

    def for_charge(self, enrolled_client, charge_type):
        return self.get_queryset().for_charge(enrolled_client, charge_type)

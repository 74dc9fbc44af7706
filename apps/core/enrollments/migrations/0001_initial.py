import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def money(**kwargs):
    return models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, **kwargs)


def percentage(**kwargs):
    return models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True, **kwargs)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('leads', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='EnrolledClient',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('payable_enrollment_charge', money()),
                ('payable_offer_letter_charge', money()),
                ('payable_first_year_percentage', percentage()),
                ('payable_first_year_fixed_charge', money()),
                ('net_payable_first_year_price', money()),
                ('first_year_salary', money()),
                ('edited_enrollment_charge', money()),
                ('edited_offer_letter_charge', money()),
                ('edited_first_year_percentage', percentage()),
                ('edited_first_year_fixed_charge', money()),
                ('edited_net_payable_first_year_price', money()),
                ('edited_first_year_salary', money()),
                ('approval_by_sales', models.BooleanField(default=False)),
                ('approval_by_admin', models.BooleanField(default=False)),
                ('has_update', models.BooleanField(default=False)),
                ('final_approval_sales', models.BooleanField(default=False)),
                ('final_approval_by_admin', models.BooleanField(default=False)),
                ('has_update_in_final', models.BooleanField(default=False)),
                ('client_user_created', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('lead', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='enrollment', to='leads.lead')),
                ('sales_person', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='sales_enrollments', to=settings.AUTH_USER_MODEL)),
                ('admin', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reviewed_enrollments', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_enrollments', to=settings.AUTH_USER_MODEL)),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='updated_enrollments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(('payable_first_year_percentage__isnull', True), ('payable_first_year_fixed_charge__isnull', True), _connector='OR'),
                        name='enrolled_client_first_year_pricing_exclusive',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(('edited_first_year_percentage__isnull', True), ('edited_first_year_fixed_charge__isnull', True), _connector='OR'),
                        name='enrolled_client_edited_pricing_exclusive',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(('approval_by_admin', True), ('has_update', True), _negated=True),
                        name='enrolled_client_update_not_admin_approved',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(('final_approval_by_admin', True), ('has_update_in_final', True), _negated=True),
                        name='enrolled_client_final_update_not_admin_approved',
                    ),
                ],
                'indexes': [
                    models.Index(fields=['approval_by_sales', 'approval_by_admin', 'has_update'], name='enroll_client_phase_idx'),
                    models.Index(fields=['final_approval_sales', 'final_approval_by_admin', 'has_update_in_final'], name='enroll_client_final_idx'),
                    models.Index(fields=['sales_person'], name='enroll_client_sales_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Installment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('installment_number', models.PositiveIntegerField()),
                ('charge_type', models.CharField(choices=[('enrollment_charge', 'Enrollment Charge'), ('offer_letter_charge', 'Offer Letter Charge'), ('first_year_charge', 'First Year Charge')], max_length=30)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('net_amount', money()),
                ('due_date', models.DateField()),
                ('remark', models.CharField(blank=True, max_length=255)),
                ('edited_amount', money()),
                ('edited_due_date', models.DateField(blank=True, null=True)),
                ('edited_remark', models.CharField(blank=True, max_length=255, null=True)),
                ('has_admin_update', models.BooleanField(default=False)),
                ('sales_approval', models.BooleanField(default=False)),
                ('is_initial_payment', models.BooleanField(default=False)),
                ('paid', models.BooleanField(default=False)),
                ('paid_date', models.DateField(blank=True, null=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('enrolled_client', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='installments', to='enrollments.enrolledclient')),
                ('admin', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reviewed_installments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['charge_type', 'installment_number', 'id'],
                'constraints': [
                    models.UniqueConstraint(fields=('enrolled_client', 'charge_type', 'installment_number'), name='unique_installment_number_per_charge'),
                    models.CheckConstraint(condition=models.Q(('amount__gte', 0)), name='installment_amount_non_negative'),
                ],
                'indexes': [
                    models.Index(fields=['enrolled_client', 'charge_type'], name='installment_client_charge_idx'),
                    models.Index(fields=['due_date'], name='installment_due_date_idx'),
                    models.Index(fields=['paid'], name='installment_paid_idx'),
                    models.Index(fields=['has_admin_update', 'sales_approval'], name='installment_review_idx'),
                ],
            },
        ),
    ]

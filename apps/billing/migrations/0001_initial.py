import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('merchants', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Subscription',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('tenant_id', models.IntegerField(db_index=True)),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ('currency', models.CharField(default='USD', max_length=10)),
                ('interval', models.CharField(choices=[('day', 'Day'), ('week', 'Week'), ('month', 'Month'), ('year', 'Year')], max_length=10)),
                ('interval_count', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('billing_anchor', models.DateTimeField()),
                ('next_due_at', models.DateTimeField(blank=True, null=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('paused', 'Paused'), ('completed', 'Completed'), ('canceled', 'Canceled')], default='active', max_length=20)),
                ('max_cycles', models.PositiveIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1)])),
                ('invoice_due_days', models.PositiveIntegerField(default=0)),
                ('generate_days_in_advance', models.PositiveIntegerField(default=0)),
                ('past_due_after_days', models.PositiveIntegerField(default=2)),
                ('pause_after_missed_payments', models.PositiveIntegerField(default=0)),
                ('charge_customer_fee', models.BooleanField(blank=True, null=True)),
                ('auto_convert_enabled', models.BooleanField(blank=True, null=True)),
                ('preferred_payout_currency', models.CharField(blank=True, max_length=20, null=True)),
                ('tax_enabled', models.BooleanField(default=False)),
                ('tax_rates', models.JSONField(blank=True, default=list)),
                ('accepted_cryptos', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('paused_at', models.DateTimeField(blank=True, null=True)),
                ('resumed_at', models.DateTimeField(blank=True, null=True)),
                ('canceled_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='subscriptions', to='merchants.customer')),
                ('merchant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='subscriptions', to='merchants.merchant')),
            ],
            options={
                'indexes': [
                    models.Index(fields=['status', 'next_due_at'], name='subscription_status_due_idx'),
                    models.Index(fields=['tenant_id', 'status'], name='subscription_tenant_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AmountOverride',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('tenant_id', models.IntegerField(db_index=True)),
                ('effective_from', models.DateField()),
                ('effective_until', models.DateField(blank=True, null=True)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ('note', models.CharField(blank=True, max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('subscription', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='amount_overrides', to='billing.subscription')),
            ],
            options={
                'ordering': ['effective_from', 'id'],
                'indexes': [models.Index(fields=['subscription', 'effective_from'], name='override_effective_idx')],
            },
        ),
        migrations.CreateModel(
            name='Invoice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('tenant_id', models.IntegerField(db_index=True)),
                ('payment_request_ref', models.CharField(max_length=100)),
                ('payment_url', models.URLField(blank=True, max_length=500)),
                ('cycle_start_at', models.DateTimeField()),
                ('cycle_number', models.PositiveIntegerField()),
                ('due_date', models.DateField()),
                ('expires_at', models.DateTimeField()),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('currency', models.CharField(max_length=10)),
                ('invoice_number', models.PositiveIntegerField()),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid'), ('past_due', 'Past due'), ('expired', 'Expired'), ('canceled', 'Canceled')], default='pending', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('merchant', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='invoices', to='merchants.merchant')),
                ('subscription', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='invoices', to='billing.subscription')),
            ],
            options={
                'indexes': [models.Index(fields=['tenant_id', 'status'], name='invoice_tenant_status_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('subscription', 'cycle_start_at'), name='unique_invoice_per_cycle'),
                    models.UniqueConstraint(fields=('merchant', 'invoice_number'), name='unique_invoice_number_per_merchant'),
                ],
            },
        ),
    ]

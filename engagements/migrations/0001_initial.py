from decimal import Decimal

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


RECURRENCE_CHOICES = [
    ("NONE", "One-off"),
    ("DAILY", "Daily"),
    ("WEEKLY", "Weekly"),
    ("MONTHLY", "Monthly"),
    ("QUARTERLY", "Quarterly"),
    ("HALF_YEARLY", "Half-yearly"),
    ("YEARLY", "Yearly"),
]
WEEKDAY_CHOICES = [
    ("monday", "Monday"),
    ("tuesday", "Tuesday"),
    ("wednesday", "Wednesday"),
    ("thursday", "Thursday"),
    ("friday", "Friday"),
    ("saturday", "Saturday"),
    ("sunday", "Sunday"),
]
OFFSET_CHOICES = [("DAYS", "Days"), ("WEEKS", "Weeks"), ("MONTHS", "Months")]
PRIORITY_CHOICES = [("LOW", "Low"), ("MEDIUM", "Medium"), ("HIGH", "High"), ("URGENT", "Urgent")]
WORK_STATUS_CHOICES = [("PENDING", "Pending"), ("IN_PROGRESS", "In progress"), ("COMPLETED", "Completed")]


def rule_fields():
    return [
        (
            "recurrence",
            models.CharField(
                blank=True,
                choices=RECURRENCE_CHOICES,
                help_text="Own granularity; empty inherits the engagement's.",
                max_length=12,
                null=True,
            ),
        ),
        (
            "due_day",
            models.CharField(
                blank=True,
                default="",
                help_text="Day of month (e.g. 20) or weekday name (e.g. friday).",
                max_length=10,
            ),
        ),
        ("due_month", models.PositiveSmallIntegerField(blank=True, null=True)),
        ("exact_due_date", models.DateField(blank=True, null=True)),
        ("due_offset_type", models.CharField(blank=True, choices=OFFSET_CHOICES, default="", max_length=6)),
        ("due_offset_value", models.IntegerField(blank=True, null=True)),
        (
            "start_date",
            models.DateField(
                blank=True,
                help_text="Task is not scheduled for periods ending before this date.",
                null=True,
            ),
        ),
        ("estimated_hours", models.DecimalField(blank=True, decimal_places=2, max_digits=6, null=True)),
    ]


def task_fields():
    return [
        ("title", models.CharField(max_length=255)),
        ("description", models.TextField(blank=True)),
        ("due_date", models.DateField(blank=True, null=True)),
        ("status", models.CharField(choices=WORK_STATUS_CHOICES, default="PENDING", max_length=12)),
        ("priority", models.CharField(choices=PRIORITY_CHOICES, default="MEDIUM", max_length=10)),
        ("estimated_hours", models.DecimalField(blank=True, decimal_places=2, max_digits=6, null=True)),
        ("sort_order", models.PositiveIntegerField(default=0)),
        ("started_at", models.DateTimeField(blank=True, null=True)),
        ("completed_at", models.DateTimeField(blank=True, null=True)),
        ("remarks", models.TextField(blank=True)),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        (
            "assigned_to",
            models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("core", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Service",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("default_price", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                (
                    "tax_rate",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Flat tax rate in percent.",
                        max_digits=5,
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="services",
                        to="core.business",
                    ),
                ),
                (
                    "income_account",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="services",
                        to="core.account",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.UniqueConstraint(fields=("business", "name"), name="uniq_service_per_business_name"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CustomerServicePrice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("price", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="service_prices",
                        to="core.customer",
                    ),
                ),
                (
                    "service",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="customer_prices",
                        to="engagements.service",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("customer", "service"), name="uniq_price_per_customer_service"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TaskTemplate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *rule_fields(),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("priority", models.CharField(choices=PRIORITY_CHOICES, default="MEDIUM", max_length=10)),
                ("sort_order", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "default_assignee",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "service",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="task_templates",
                        to="engagements.service",
                    ),
                ),
            ],
            options={
                "ordering": ["sort_order", "id"],
            },
        ),
        migrations.CreateModel(
            name="Engagement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(blank=True, max_length=255)),
                ("recurrence", models.CharField(choices=RECURRENCE_CHOICES, default="NONE", max_length=12)),
                ("start_date", models.DateField(blank=True, null=True)),
                ("end_date", models.DateField(blank=True, null=True)),
                ("weekly_start_day", models.CharField(choices=WEEKDAY_CHOICES, default="monday", max_length=10)),
                ("monthly_start_day", models.PositiveSmallIntegerField(default=1)),
                ("quarterly_start_day", models.PositiveSmallIntegerField(default=1)),
                ("half_yearly_start_day", models.PositiveSmallIntegerField(default=1)),
                ("yearly_start_day", models.PositiveSmallIntegerField(default=1)),
                ("fiscal_year_start_month", models.PositiveSmallIntegerField(default=4)),
                ("auto_bill", models.BooleanField(default=True)),
                ("billing_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("status", models.CharField(choices=WORK_STATUS_CHOICES, default="PENDING", max_length=12)),
                (
                    "billing_status",
                    models.CharField(
                        choices=[("NOT_BILLED", "Not billed"), ("BILLED", "Billed")],
                        default="NOT_BILLED",
                        max_length=12,
                    ),
                ),
                ("invoice_generated", models.BooleanField(default=False)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "assigned_to",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="engagements",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "business",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="engagements",
                        to="core.business",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="engagements",
                        to="core.customer",
                    ),
                ),
                (
                    "invoice",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="core.invoice",
                    ),
                ),
                (
                    "service",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="engagements",
                        to="engagements.service",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("fiscal_year_start_month__gte", 1), ("fiscal_year_start_month__lte", 12)),
                        name="engagement_fiscal_month_range",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("monthly_start_day__gte", 1), ("monthly_start_day__lte", 31)),
                        name="engagement_monthly_start_day_range",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="TaskConfig",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *rule_fields(),
                ("title", models.CharField(blank=True, default="", max_length=255)),
                ("priority", models.CharField(blank=True, choices=PRIORITY_CHOICES, default="", max_length=10)),
                ("is_active", models.BooleanField(blank=True, null=True)),
                (
                    "assignee",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "engagement",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="task_configs",
                        to="engagements.engagement",
                    ),
                ),
                (
                    "template",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="configs",
                        to="engagements.tasktemplate",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("engagement", "template"),
                        name="uniq_task_config_per_engagement_template",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Period",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                ("period_start", models.DateField()),
                ("period_end", models.DateField()),
                ("status", models.CharField(choices=WORK_STATUS_CHOICES, default="PENDING", max_length=12)),
                ("total_tasks", models.PositiveIntegerField(default=0)),
                ("completed_tasks", models.PositiveIntegerField(default=0)),
                ("billing_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("is_billed", models.BooleanField(default=False)),
                ("invoice_generated", models.BooleanField(default=False)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "engagement",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="periods",
                        to="engagements.engagement",
                    ),
                ),
                (
                    "invoice",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="core.invoice",
                    ),
                ),
            ],
            options={
                "ordering": ["period_start"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("engagement", "period_start"),
                        name="uniq_period_start_per_engagement",
                    ),
                    models.UniqueConstraint(
                        fields=("engagement", "period_end"),
                        name="uniq_period_end_per_engagement",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("period_end__gte", models.F("period_start"))),
                        name="period_end_after_start",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PeriodTask",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *task_fields(),
                ("sub_period_start", models.DateField()),
                ("sub_period_end", models.DateField()),
                (
                    "period",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tasks",
                        to="engagements.period",
                    ),
                ),
                (
                    "template",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="period_tasks",
                        to="engagements.tasktemplate",
                    ),
                ),
            ],
            options={
                "ordering": ["sort_order", "due_date", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("period", "template", "sub_period_start"),
                        name="uniq_period_task_per_template_interval",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="EngagementTask",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *task_fields(),
                (
                    "engagement",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tasks",
                        to="engagements.engagement",
                    ),
                ),
                (
                    "template",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="engagement_tasks",
                        to="engagements.tasktemplate",
                    ),
                ),
            ],
            options={
                "ordering": ["sort_order", "due_date", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("template__isnull", False)),
                        fields=("engagement", "template"),
                        name="uniq_engagement_task_per_template",
                    ),
                ],
            },
        ),
    ]

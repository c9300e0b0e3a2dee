from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.utils import timezone

if TYPE_CHECKING:
    from django.db.models import Manager


class Recurrence(models.TextChoices):
    NONE = "NONE", "One-off"
    DAILY = "DAILY", "Daily"
    WEEKLY = "WEEKLY", "Weekly"
    MONTHLY = "MONTHLY", "Monthly"
    QUARTERLY = "QUARTERLY", "Quarterly"
    HALF_YEARLY = "HALF_YEARLY", "Half-yearly"
    YEARLY = "YEARLY", "Yearly"


class Weekday(models.TextChoices):
    MONDAY = "monday", "Monday"
    TUESDAY = "tuesday", "Tuesday"
    WEDNESDAY = "wednesday", "Wednesday"
    THURSDAY = "thursday", "Thursday"
    FRIDAY = "friday", "Friday"
    SATURDAY = "saturday", "Saturday"
    SUNDAY = "sunday", "Sunday"


class OffsetType(models.TextChoices):
    DAYS = "DAYS", "Days"
    WEEKS = "WEEKS", "Weeks"
    MONTHS = "MONTHS", "Months"


class Priority(models.TextChoices):
    LOW = "LOW", "Low"
    MEDIUM = "MEDIUM", "Medium"
    HIGH = "HIGH", "High"
    URGENT = "URGENT", "Urgent"


class WorkStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    IN_PROGRESS = "IN_PROGRESS", "In progress"
    COMPLETED = "COMPLETED", "Completed"


class Service(models.Model):
    business = models.ForeignKey(
        "core.Business",
        on_delete=models.CASCADE,
        related_name="services",
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    default_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Flat tax rate in percent.",
    )
    income_account = models.ForeignKey(
        "core.Account",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="services",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["business", "name"],
                name="uniq_service_per_business_name",
            )
        ]

    def __str__(self):
        return self.name

    if TYPE_CHECKING:
        task_templates: Manager["TaskTemplate"]


class CustomerServicePrice(models.Model):
    customer = models.ForeignKey(
        "core.Customer",
        on_delete=models.CASCADE,
        related_name="service_prices",
    )
    service = models.ForeignKey(
        Service,
        on_delete=models.CASCADE,
        related_name="customer_prices",
    )
    price = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["customer", "service"],
                name="uniq_price_per_customer_service",
            )
        ]

    def __str__(self):
        return f"{self.customer} / {self.service}: {self.price}"


class TaskRuleFields(models.Model):
    """Due-date rule columns shared by templates and per-engagement overrides."""

    recurrence = models.CharField(
        max_length=12,
        choices=Recurrence.choices,
        blank=True,
        null=True,
        help_text="Own granularity; empty inherits the engagement's.",
    )
    due_day = models.CharField(
        max_length=10,
        blank=True,
        default="",
        help_text="Day of month (e.g. 20) or weekday name (e.g. friday).",
    )
    due_month = models.PositiveSmallIntegerField(null=True, blank=True)
    exact_due_date = models.DateField(null=True, blank=True)
    due_offset_type = models.CharField(max_length=6, choices=OffsetType.choices, blank=True, default="")
    due_offset_value = models.IntegerField(null=True, blank=True)
    start_date = models.DateField(
        null=True,
        blank=True,
        help_text="Task is not scheduled for periods ending before this date.",
    )
    estimated_hours = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)

    class Meta:
        abstract = True


class TaskTemplate(TaskRuleFields):
    service = models.ForeignKey(
        Service,
        on_delete=models.CASCADE,
        related_name="task_templates",
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    default_assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    sort_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["sort_order", "id"]

    def __str__(self):
        return self.title


class TaskConfig(TaskRuleFields):
    """Per-engagement override of a TaskTemplate. Empty fields inherit from the template."""

    engagement = models.ForeignKey(
        "engagements.Engagement",
        on_delete=models.CASCADE,
        related_name="task_configs",
    )
    template = models.ForeignKey(
        TaskTemplate,
        on_delete=models.CASCADE,
        related_name="configs",
    )
    title = models.CharField(max_length=255, blank=True, default="")
    priority = models.CharField(max_length=10, choices=Priority.choices, blank=True, default="")
    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    is_active = models.BooleanField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["engagement", "template"],
                name="uniq_task_config_per_engagement_template",
            )
        ]


class Engagement(models.Model):
    Status = WorkStatus

    class BillingStatus(models.TextChoices):
        NOT_BILLED = "NOT_BILLED", "Not billed"
        BILLED = "BILLED", "Billed"

    business = models.ForeignKey(
        "core.Business",
        on_delete=models.CASCADE,
        related_name="engagements",
    )
    customer = models.ForeignKey(
        "core.Customer",
        on_delete=models.PROTECT,
        related_name="engagements",
    )
    service = models.ForeignKey(
        Service,
        on_delete=models.PROTECT,
        related_name="engagements",
    )
    title = models.CharField(max_length=255, blank=True)
    recurrence = models.CharField(max_length=12, choices=Recurrence.choices, default=Recurrence.NONE)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    weekly_start_day = models.CharField(max_length=10, choices=Weekday.choices, default=Weekday.MONDAY)
    monthly_start_day = models.PositiveSmallIntegerField(default=1)
    quarterly_start_day = models.PositiveSmallIntegerField(default=1)
    half_yearly_start_day = models.PositiveSmallIntegerField(default=1)
    yearly_start_day = models.PositiveSmallIntegerField(default=1)
    fiscal_year_start_month = models.PositiveSmallIntegerField(default=4)
    auto_bill = models.BooleanField(default=True)
    billing_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="engagements",
    )
    status = models.CharField(max_length=12, choices=WorkStatus.choices, default=WorkStatus.PENDING)
    billing_status = models.CharField(
        max_length=12,
        choices=BillingStatus.choices,
        default=BillingStatus.NOT_BILLED,
    )
    invoice_generated = models.BooleanField(default=False)
    invoice = models.ForeignKey(
        "core.Invoice",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(fiscal_year_start_month__gte=1) & models.Q(fiscal_year_start_month__lte=12),
                name="engagement_fiscal_month_range",
            ),
            models.CheckConstraint(
                condition=models.Q(monthly_start_day__gte=1) & models.Q(monthly_start_day__lte=31),
                name="engagement_monthly_start_day_range",
            ),
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._original_status = self.status

    def __str__(self):
        return self.title or f"{self.service} – {self.customer}"

    @property
    def is_recurring(self) -> bool:
        return self.recurrence != Recurrence.NONE

    def calendar_config(self):
        from .services.recurrence import CalendarConfig

        return CalendarConfig(
            fiscal_year_start_month=self.fiscal_year_start_month,
            weekly_start_day=self.weekly_start_day,
            monthly_start_day=self.monthly_start_day,
            quarterly_start_day=self.quarterly_start_day,
            half_yearly_start_day=self.half_yearly_start_day,
            yearly_start_day=self.yearly_start_day,
        )

    def save(self, *args, **kwargs):
        prev_status = None if self._state.adding else self._original_status
        if self.status == WorkStatus.COMPLETED and not self.completed_at:
            self.completed_at = timezone.now()
        elif self.status != WorkStatus.COMPLETED:
            self.completed_at = None
        super().save(*args, **kwargs)

        if prev_status is not None and prev_status != self.status and not self.is_recurring:
            from .services.invoicing import handle_engagement_status_change

            handle_engagement_status_change(self, prev_status)
        self._original_status = self.status

    if TYPE_CHECKING:
        id: int
        periods: Manager["Period"]
        tasks: Manager["EngagementTask"]
        task_configs: Manager[TaskConfig]


class Period(models.Model):
    Status = WorkStatus

    engagement = models.ForeignKey(
        Engagement,
        on_delete=models.CASCADE,
        related_name="periods",
    )
    name = models.CharField(max_length=100)
    period_start = models.DateField()
    period_end = models.DateField()
    status = models.CharField(max_length=12, choices=WorkStatus.choices, default=WorkStatus.PENDING)
    total_tasks = models.PositiveIntegerField(default=0)
    completed_tasks = models.PositiveIntegerField(default=0)
    billing_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    invoice = models.ForeignKey(
        "core.Invoice",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    is_billed = models.BooleanField(default=False)
    invoice_generated = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["period_start"]
        constraints = [
            models.UniqueConstraint(
                fields=["engagement", "period_start"],
                name="uniq_period_start_per_engagement",
            ),
            models.UniqueConstraint(
                fields=["engagement", "period_end"],
                name="uniq_period_end_per_engagement",
            ),
            models.CheckConstraint(
                condition=models.Q(period_end__gte=models.F("period_start")),
                name="period_end_after_start",
            ),
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._original_status = self.status

    def __str__(self):
        return f"{self.engagement} – {self.name}"

    def save(self, *args, **kwargs):
        prev_status = None if self._state.adding else self._original_status
        if self.status == WorkStatus.COMPLETED and not self.completed_at:
            self.completed_at = timezone.now()
        elif self.status != WorkStatus.COMPLETED:
            self.completed_at = None
        super().save(*args, **kwargs)

        if prev_status is not None and prev_status != self.status:
            from .services.invoicing import handle_period_status_change

            handle_period_status_change(self, prev_status)
        self._original_status = self.status

    if TYPE_CHECKING:
        id: int
        tasks: Manager["PeriodTask"]


class TaskFields(models.Model):
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=12, choices=WorkStatus.choices, default=WorkStatus.PENDING)
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    estimated_hours = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    sort_order = models.PositiveIntegerField(default=0)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    remarks = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._original_status = self.status

    def _stamp_status_times(self):
        now = timezone.now()
        if self.status in (WorkStatus.IN_PROGRESS, WorkStatus.COMPLETED) and not self.started_at:
            self.started_at = now
        if self.status == WorkStatus.COMPLETED:
            self.completed_at = self.completed_at or now
        else:
            self.completed_at = None

    def save(self, *args, **kwargs):
        status_changed = not self._state.adding and self._original_status != self.status
        self._stamp_status_times()
        super().save(*args, **kwargs)
        if status_changed:
            self.on_status_change()
        self._original_status = self.status

    def on_status_change(self):
        raise NotImplementedError


class PeriodTask(TaskFields):
    period = models.ForeignKey(
        Period,
        on_delete=models.CASCADE,
        related_name="tasks",
    )
    template = models.ForeignKey(
        TaskTemplate,
        on_delete=models.CASCADE,
        related_name="period_tasks",
    )
    sub_period_start = models.DateField()
    sub_period_end = models.DateField()

    class Meta:
        ordering = ["sort_order", "due_date", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["period", "template", "sub_period_start"],
                name="uniq_period_task_per_template_interval",
            )
        ]

    def __str__(self):
        return self.title

    def on_status_change(self):
        from .services.invoicing import refresh_period_progress

        refresh_period_progress(self.period)


class EngagementTask(TaskFields):
    engagement = models.ForeignKey(
        Engagement,
        on_delete=models.CASCADE,
        related_name="tasks",
    )
    template = models.ForeignKey(
        TaskTemplate,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="engagement_tasks",
    )

    class Meta:
        ordering = ["sort_order", "due_date", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["engagement", "template"],
                condition=models.Q(template__isnull=False),
                name="uniq_engagement_task_per_template",
            )
        ]

    def __str__(self):
        return self.title

    def on_status_change(self):
        from .services.invoicing import refresh_engagement_progress

        refresh_engagement_progress(self.engagement)

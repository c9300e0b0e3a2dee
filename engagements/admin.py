from django.contrib import admin

from .models import CustomerServicePrice, Engagement, EngagementTask, Period, PeriodTask, Service, TaskConfig, TaskTemplate


class TaskTemplateInline(admin.TabularInline):
    model = TaskTemplate
    extra = 0
    fields = ("title", "recurrence", "due_day", "due_month", "due_offset_type", "due_offset_value", "sort_order", "is_active")


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ("name", "business", "default_price", "tax_rate", "income_account", "is_active")
    search_fields = ("name",)
    inlines = [TaskTemplateInline]


@admin.register(CustomerServicePrice)
class CustomerServicePriceAdmin(admin.ModelAdmin):
    list_display = ("customer", "service", "price")


class TaskConfigInline(admin.TabularInline):
    model = TaskConfig
    extra = 0


@admin.register(Engagement)
class EngagementAdmin(admin.ModelAdmin):
    list_display = ("__str__", "business", "recurrence", "start_date", "status", "billing_status", "invoice_generated")
    list_filter = ("recurrence", "status", "billing_status")
    inlines = [TaskConfigInline]


class PeriodTaskInline(admin.TabularInline):
    model = PeriodTask
    extra = 0
    fields = ("title", "due_date", "status", "assigned_to")


@admin.register(Period)
class PeriodAdmin(admin.ModelAdmin):
    list_display = ("name", "engagement", "period_start", "period_end", "status", "completed_tasks", "total_tasks", "is_billed")
    list_filter = ("status", "is_billed")
    inlines = [PeriodTaskInline]


@admin.register(EngagementTask)
class EngagementTaskAdmin(admin.ModelAdmin):
    list_display = ("title", "engagement", "due_date", "status")
    list_filter = ("status",)

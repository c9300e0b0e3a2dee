from datetime import date
from decimal import Decimal

from django.test import TestCase, override_settings

from core.models import Business, Invoice, LedgerTransaction
from engagements.models import Engagement, Period, Recurrence, WorkStatus
from engagements.services.generator import copy_templates_to_engagement, generate_periods
from engagements.services.invoicing import create_invoice_for_engagement, create_invoice_for_period, rollup_status

from .helpers import make_engagement, make_practice, make_template


class RollupStatusTests(TestCase):
    def test_rollup(self):
        self.assertEqual(rollup_status(0, 0, 0), WorkStatus.PENDING)
        self.assertEqual(rollup_status(3, 0, 0), WorkStatus.PENDING)
        self.assertEqual(rollup_status(3, 1, 1), WorkStatus.IN_PROGRESS)
        self.assertEqual(rollup_status(3, 0, 2), WorkStatus.IN_PROGRESS)
        self.assertEqual(rollup_status(3, 3, 3), WorkStatus.COMPLETED)


@override_settings(ENGAGEMENT_AUTO_GENERATE=False, PERIOD_LOOKAHEAD="none", STALE_INVOICE_POLICY="orphan")
class PeriodInvoicingTests(TestCase):
    def setUp(self):
        self.user, self.business, self.customer, self.service = make_practice()
        make_template(self.service, title="Prepare GSTR-1", due_day="10")
        make_template(self.service, title="File GSTR-3B", due_day="20", sort_order=1)
        self.engagement = make_engagement(self.business, self.customer, self.service)
        generate_periods(self.engagement, as_of=date(2025, 1, 31))
        self.period = self.engagement.periods.get()

    def _set_tasks(self, status):
        for task in self.period.tasks.order_by("sort_order"):
            task.status = status
            task.save()
        self.period.refresh_from_db()

    def test_period_progress_follows_tasks(self):
        first = self.period.tasks.order_by("sort_order").first()
        first.status = WorkStatus.IN_PROGRESS
        first.save()

        self.period.refresh_from_db()
        self.assertEqual(self.period.status, WorkStatus.IN_PROGRESS)
        self.assertEqual((self.period.completed_tasks, self.period.total_tasks), (0, 2))
        self.assertIsNotNone(first.started_at)

        first.status = WorkStatus.COMPLETED
        first.save()
        self.period.refresh_from_db()
        self.assertEqual(self.period.status, WorkStatus.IN_PROGRESS)
        self.assertEqual(self.period.completed_tasks, 1)
        self.assertIsNotNone(first.completed_at)

    def test_completing_every_task_raises_draft_invoice(self):
        self._set_tasks(WorkStatus.COMPLETED)

        self.assertEqual(self.period.status, WorkStatus.COMPLETED)
        self.assertIsNotNone(self.period.completed_at)
        self.assertTrue(self.period.invoice_generated)
        self.assertTrue(self.period.is_billed)

        invoice = self.period.invoice
        self.assertEqual(invoice.status, Invoice.Status.DRAFT)
        self.assertEqual(invoice.invoice_number, "INV-0001")
        self.assertEqual(invoice.subtotal, Decimal("1000.00"))
        self.assertEqual(invoice.tax_amount, Decimal("180.00"))
        self.assertEqual(invoice.total_amount, Decimal("1180.00"))
        self.assertEqual(invoice.engagement, self.engagement)
        self.assertEqual(invoice.period, self.period)
        self.assertEqual(invoice.income_account.code, "4010")
        self.assertEqual(invoice.customer_account.code, f"1200-{self.customer.pk:05d}")
        self.assertEqual((invoice.due_date - invoice.issue_date).days, 30)
        item = invoice.items.get()
        self.assertEqual(item.description, "GST Filing - Jan 2025")
        self.assertEqual(item.service, self.service)
        self.assertFalse(LedgerTransaction.objects.filter(invoice=invoice).exists())

    def test_invoice_created_once_per_completion(self):
        self._set_tasks(WorkStatus.COMPLETED)
        self.assertIsNone(create_invoice_for_period(self.period))
        self.assertEqual(Invoice.objects.filter(period=self.period).count(), 1)

    def test_reopening_orphans_invoice_and_recompletion_bills_again(self):
        self._set_tasks(WorkStatus.COMPLETED)
        first_invoice = self.period.invoice

        task = self.period.tasks.order_by("sort_order").first()
        task.status = WorkStatus.IN_PROGRESS
        task.save()

        self.period.refresh_from_db()
        self.assertEqual(self.period.status, WorkStatus.IN_PROGRESS)
        self.assertIsNone(self.period.completed_at)
        self.assertFalse(self.period.invoice_generated)
        self.assertFalse(self.period.is_billed)
        self.assertTrue(Invoice.objects.filter(pk=first_invoice.pk).exists())

        task.status = WorkStatus.COMPLETED
        task.save()

        self.period.refresh_from_db()
        self.assertTrue(self.period.invoice_generated)
        self.assertNotEqual(self.period.invoice_id, first_invoice.pk)
        self.assertEqual(self.period.invoice.invoice_number, "INV-0002")
        self.assertEqual(Invoice.objects.filter(period=self.period).count(), 2)

    @override_settings(STALE_INVOICE_POLICY="delete_draft")
    def test_reopening_can_delete_draft_invoice(self):
        self._set_tasks(WorkStatus.COMPLETED)
        draft = self.period.invoice

        self._set_tasks(WorkStatus.PENDING)

        self.assertFalse(Invoice.objects.filter(pk=draft.pk).exists())
        self.assertIsNone(self.period.invoice)
        self.assertFalse(self.period.invoice_generated)

    @override_settings(STALE_INVOICE_POLICY="delete_draft")
    def test_sent_invoice_survives_reopening(self):
        self._set_tasks(WorkStatus.COMPLETED)
        invoice = self.period.invoice
        invoice.status = Invoice.Status.SENT
        invoice.save()
        self.assertEqual(LedgerTransaction.objects.filter(invoice=invoice).count(), 2)

        self._set_tasks(WorkStatus.PENDING)

        self.assertTrue(Invoice.objects.filter(pk=invoice.pk).exists())
        self.assertFalse(self.period.invoice_generated)

    def test_deleting_invoice_frees_period_for_billing(self):
        self._set_tasks(WorkStatus.COMPLETED)
        deleted = self.period.invoice

        deleted.delete()

        self.period.refresh_from_db()
        self.assertIsNone(self.period.invoice)
        self.assertFalse(self.period.invoice_generated)
        self.assertFalse(self.period.is_billed)

        task = self.period.tasks.order_by("sort_order").first()
        task.status = WorkStatus.IN_PROGRESS
        task.save()
        task.status = WorkStatus.COMPLETED
        task.save()

        self.period.refresh_from_db()
        self.assertTrue(self.period.invoice_generated)
        self.assertTrue(self.period.is_billed)
        self.assertNotEqual(self.period.invoice_id, deleted.pk)
        self.assertEqual(Invoice.objects.filter(period=self.period).count(), 1)

    @override_settings(INVOICE_DELETION_POLICY="keep")
    def test_deleted_invoice_can_leave_period_billed(self):
        self._set_tasks(WorkStatus.COMPLETED)

        self.period.invoice.delete()

        self.period.refresh_from_db()
        self.assertIsNone(self.period.invoice)
        self.assertTrue(self.period.invoice_generated)
        self.assertTrue(self.period.is_billed)
        self.assertIsNone(create_invoice_for_period(self.period))

    def test_deleting_orphaned_invoice_keeps_current_billing(self):
        self._set_tasks(WorkStatus.COMPLETED)
        orphan = self.period.invoice
        task = self.period.tasks.order_by("sort_order").first()
        task.status = WorkStatus.IN_PROGRESS
        task.save()
        task.status = WorkStatus.COMPLETED
        task.save()

        orphan.delete()

        self.period.refresh_from_db()
        self.assertTrue(self.period.invoice_generated)
        self.assertEqual(self.period.invoice.invoice_number, "INV-0002")

    def test_auto_bill_off_completes_without_invoice(self):
        Engagement.objects.filter(pk=self.engagement.pk).update(auto_bill=False)

        self._set_tasks(WorkStatus.COMPLETED)

        self.assertEqual(self.period.status, WorkStatus.COMPLETED)
        self.assertFalse(self.period.invoice_generated)
        self.assertFalse(Invoice.objects.exists())

    def test_zero_amount_is_not_billed(self):
        Period.objects.filter(pk=self.period.pk).update(billing_amount=Decimal("0.00"))

        self._set_tasks(WorkStatus.COMPLETED)

        self.assertEqual(self.period.status, WorkStatus.COMPLETED)
        self.assertFalse(Invoice.objects.exists())

    def test_missing_price_is_not_billed(self):
        self.service.default_price = None
        self.service.save()

        self._set_tasks(WorkStatus.COMPLETED)

        self.assertEqual(self.period.status, WorkStatus.COMPLETED)
        self.assertFalse(self.period.invoice_generated)

    def test_missing_income_ledger_is_not_billed(self):
        Business.objects.filter(pk=self.business.pk).update(default_income_account=None)

        self._set_tasks(WorkStatus.COMPLETED)

        self.assertEqual(self.period.status, WorkStatus.COMPLETED)
        self.assertFalse(Invoice.objects.exists())

    def test_configured_invoice_numbering_is_used(self):
        Business.objects.filter(pk=self.business.pk).update(
            invoice_prefix="GST-",
            invoice_number_width=5,
            invoice_starting_number=41,
        )

        self._set_tasks(WorkStatus.COMPLETED)

        self.assertEqual(self.period.invoice.invoice_number, "GST-00041")


@override_settings(ENGAGEMENT_AUTO_GENERATE=False, STALE_INVOICE_POLICY="orphan")
class EngagementInvoicingTests(TestCase):
    def setUp(self):
        self.user, self.business, self.customer, self.service = make_practice()
        make_template(self.service, title="Collect documents")
        make_template(self.service, title="File return", sort_order=1)
        self.engagement = make_engagement(
            self.business,
            self.customer,
            self.service,
            recurrence=Recurrence.NONE,
            title="Income tax return FY 2024-25",
        )
        copy_templates_to_engagement(self.engagement)

    def test_completing_checklist_bills_engagement(self):
        for task in self.engagement.tasks.all():
            task.status = WorkStatus.COMPLETED
            task.save()

        self.engagement.refresh_from_db()
        self.assertEqual(self.engagement.status, WorkStatus.COMPLETED)
        self.assertTrue(self.engagement.invoice_generated)
        self.assertEqual(self.engagement.billing_status, Engagement.BillingStatus.BILLED)
        invoice = self.engagement.invoice
        self.assertEqual(invoice.total_amount, Decimal("1180.00"))
        self.assertIsNone(invoice.period)
        self.assertIsNone(invoice.income_account)
        self.assertIsNone(invoice.customer_account)
        self.assertEqual(invoice.items.get().description, "Income tax return FY 2024-25")

    def test_partial_checklist_marks_in_progress(self):
        task = self.engagement.tasks.order_by("sort_order").first()
        task.status = WorkStatus.COMPLETED
        task.save()

        self.engagement.refresh_from_db()
        self.assertEqual(self.engagement.status, WorkStatus.IN_PROGRESS)
        self.assertFalse(self.engagement.invoice_generated)

    def test_direct_status_change_bills_and_reopen_resets(self):
        self.engagement.status = WorkStatus.COMPLETED
        self.engagement.save()

        self.engagement.refresh_from_db()
        self.assertTrue(self.engagement.invoice_generated)
        invoice_id = self.engagement.invoice_id

        self.engagement.status = WorkStatus.IN_PROGRESS
        self.engagement.save()

        self.engagement.refresh_from_db()
        self.assertFalse(self.engagement.invoice_generated)
        self.assertEqual(self.engagement.billing_status, Engagement.BillingStatus.NOT_BILLED)
        self.assertIsNone(self.engagement.completed_at)
        self.assertEqual(self.engagement.invoice_id, invoice_id)
        self.assertTrue(Invoice.objects.filter(pk=invoice_id).exists())

    def test_deleting_invoice_frees_engagement_for_billing(self):
        self.engagement.status = WorkStatus.COMPLETED
        self.engagement.save()
        self.engagement.refresh_from_db()

        self.engagement.invoice.delete()

        self.engagement.refresh_from_db()
        self.assertIsNone(self.engagement.invoice)
        self.assertFalse(self.engagement.invoice_generated)
        self.assertEqual(self.engagement.billing_status, Engagement.BillingStatus.NOT_BILLED)
        self.assertIsNotNone(create_invoice_for_engagement(self.engagement))

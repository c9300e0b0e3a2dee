from datetime import date

from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework.test import APIClient

from .helpers import make_engagement, make_practice, make_template


@override_settings(ENGAGEMENT_AUTO_GENERATE=False, PERIOD_LOOKAHEAD="none")
class GeneratePeriodsAPITests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user, self.business, self.customer, self.service = make_practice()
        make_template(self.service, due_day="10")
        self.engagement = make_engagement(self.business, self.customer, self.service, start_date=date(2025, 1, 10))
        self.url = reverse("engagements:generate_periods", args=[self.engagement.pk])

    def test_generate_periods(self):
        self.client.force_authenticate(user=self.user)

        resp = self.client.post(self.url, {"as_of": "2025-03-15"}, format="json")

        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["periods_created"], 3)
        self.assertEqual(data["tasks_created"], 3)
        self.assertEqual(data["as_of"], "2025-03-15")
        self.assertEqual([p["name"] for p in data["periods"]], ["Jan 2025", "Feb 2025", "Mar 2025"])
        self.assertEqual(data["periods"][0]["total_tasks"], 1)

    def test_lookahead_and_regenerate(self):
        self.client.force_authenticate(user=self.user)
        self.client.post(self.url, {"as_of": "2025-03-15"}, format="json")

        resp = self.client.post(
            self.url,
            {"as_of": "2025-03-15", "lookahead": "one_ahead", "regenerate": True},
            format="json",
        )

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["periods_created"], 4)

    def test_invalid_payload(self):
        self.client.force_authenticate(user=self.user)
        resp = self.client.post(self.url, {"lookahead": "forever"}, format="json")
        self.assertEqual(resp.status_code, 400)

    def test_other_business_engagement_is_not_found(self):
        outsider, _, _, _ = make_practice("outsider")
        self.client.force_authenticate(user=outsider)

        resp = self.client.post(self.url, {"as_of": "2025-03-15"}, format="json")

        self.assertEqual(resp.status_code, 404)
        self.assertFalse(self.engagement.periods.exists())

    def test_requires_authentication(self):
        resp = self.client.post(self.url, {"as_of": "2025-03-15"}, format="json")
        self.assertIn(resp.status_code, (401, 403))

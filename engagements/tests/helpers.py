from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model

from core.models import Business, Customer
from engagements.models import Engagement, Recurrence, Service, TaskTemplate

User = get_user_model()


def make_practice(username="partner", *, default_price=Decimal("1000.00"), tax_rate=Decimal("18.00")):
    """User, business (with seeded ledgers), a customer and a billable service."""
    user = User.objects.create_user(username=username, email=f"{username}@example.com", password="pass1234")
    business = Business.objects.create(name=f"{username.title()} & Associates", currency="INR", owner_user=user)
    customer = Customer.objects.create(business=business, name="Acme Traders")
    service = Service.objects.create(
        business=business,
        name="GST Filing",
        default_price=default_price,
        tax_rate=tax_rate,
    )
    return user, business, customer, service


def make_template(service, title="Prepare GSTR-1", **rule):
    return TaskTemplate.objects.create(service=service, title=title, **rule)


def make_engagement(business, customer, service, *, recurrence=Recurrence.MONTHLY, start_date=date(2025, 1, 1), **extra):
    return Engagement.objects.create(
        business=business,
        customer=customer,
        service=service,
        recurrence=recurrence,
        start_date=start_date,
        **extra,
    )

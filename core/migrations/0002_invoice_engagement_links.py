from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    dependencies = [
        ("core", "0001_initial"),
        ("engagements", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="invoice",
            name="engagement",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="invoices",
                to="engagements.engagement",
            ),
        ),
        migrations.AddField(
            model_name="invoice",
            name="period",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="invoices",
                to="engagements.period",
            ),
        ),
        migrations.AddField(
            model_name="invoiceitem",
            name="service",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="invoice_items",
                to="engagements.service",
            ),
        ),
    ]

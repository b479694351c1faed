"""
Link bookings to the captured PaymentIntent.

Split from 0001 because payments.PaymentIntent itself references
bookings.Service, so the two initial migrations cannot depend on each
other.
"""

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("bookings", "0001_initial"),
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="booking",
            name="payment_intent",
            field=models.OneToOneField(
                help_text="Captured PaymentIntent this booking was created from",
                on_delete=django.db.models.deletion.PROTECT,
                related_name="booking",
                to="payments.paymentintent",
            ),
        ),
    ]

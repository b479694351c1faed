"""
ProviderAccount model for Stripe Connect integration.

Each provider has one Express connected account that receives payouts.
The account flags are refreshed from Stripe on ``account.updated`` and
``capability.updated`` webhooks and on explicit status requests.

Usage:
    from payments.models import ProviderAccount

    account = ProviderAccount.objects.create(
        profile=provider_profile,
        stripe_account_id="acct_1234567890",
    )

    if account.can_accept_bookings:
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import models
from django.db.models import F

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import ProviderAccountStatus

if TYPE_CHECKING:
    from typing import Any


class ProviderAccount(UUIDPrimaryKeyMixin, BaseModel):
    """
    Stripe Connect account for a provider.

    Fields:
        profile: OneToOne link to the provider's Profile
        stripe_account_id: Unique Stripe Account ID (acct_xxx)
        charges_enabled: Whether Stripe has enabled charges
        details_submitted: Whether onboarding details were submitted
        payouts_enabled: Whether Stripe has enabled payouts
        account_status: PENDING until charges are enabled, then ACTIVE
        version: Optimistic locking version field
        metadata: Flexible JSON storage (country, business type)

    Note:
        The profile field uses PROTECT on_delete so a provider with a
        connected account cannot be removed by accident.
    """

    profile = models.OneToOneField(
        "authentication.Profile",
        on_delete=models.PROTECT,
        related_name="provider_account",
        help_text="Provider profile this connected account belongs to",
    )

    stripe_account_id = models.CharField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="Stripe Account ID (acct_xxx)",
    )

    charges_enabled = models.BooleanField(
        default=False,
        help_text="Whether Stripe has enabled charges for this account",
    )

    details_submitted = models.BooleanField(
        default=False,
        help_text="Whether the provider finished submitting onboarding details",
    )

    payouts_enabled = models.BooleanField(
        default=False,
        help_text="Whether Stripe has enabled payouts for this account",
    )

    account_status = models.CharField(
        max_length=20,
        choices=ProviderAccountStatus.choices,
        default=ProviderAccountStatus.PENDING,
        db_index=True,
        help_text="Derived account status",
    )

    # Optimistic locking
    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata (e.g., business type, country)",
    )

    class Meta:
        db_table = "provider_accounts"
        ordering = ["-created_at"]
        verbose_name = "Provider Account"
        verbose_name_plural = "Provider Accounts"

    def __str__(self) -> str:
        """Return string representation with Stripe ID and status."""
        return f"ProviderAccount({self.stripe_account_id}, {self.account_status})"

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment for optimistic locking.

        On update (not force_insert), atomically increments the version
        field to detect concurrent modifications.
        """
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            # Refresh to get actual version value after F() expression
            self.refresh_from_db(fields=["version"])

    @property
    def can_accept_bookings(self) -> bool:
        """
        Check if the provider can take paid bookings.

        Requires the account to be ACTIVE and Stripe to have enabled
        charges for it.
        """
        return (
            self.account_status == ProviderAccountStatus.ACTIVE and self.charges_enabled
        )

    def apply_stripe_account(self, account: dict[str, Any]) -> bool:
        """
        Copy capability flags from a Stripe Account object.

        Does not save - caller must save after calling.

        Args:
            account: Stripe Account payload (``data.object`` of account.updated)

        Returns:
            True if any tracked field changed
        """
        charges_enabled = bool(account.get("charges_enabled"))
        details_submitted = bool(account.get("details_submitted"))
        payouts_enabled = bool(account.get("payouts_enabled"))
        account_status = (
            ProviderAccountStatus.ACTIVE
            if charges_enabled
            else ProviderAccountStatus.PENDING
        )

        changed = (
            self.charges_enabled != charges_enabled
            or self.details_submitted != details_submitted
            or self.payouts_enabled != payouts_enabled
            or self.account_status != account_status
        )
        self.charges_enabled = charges_enabled
        self.details_submitted = details_submitted
        self.payouts_enabled = payouts_enabled
        self.account_status = account_status
        return changed

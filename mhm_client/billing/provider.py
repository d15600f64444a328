"""
Billing provider interface for abstracting the subscription SDK.
"""
from abc import ABC, abstractmethod
from typing import Optional

from mhm_client.schemas.billing import BillingCustomerInfo, BillingPackage, Offering


class BillingProvider(ABC):
    """Abstract base class for subscription billing providers."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether configure() succeeded."""
        pass

    @property
    @abstractmethod
    def app_user_id(self) -> Optional[str]:
        """App user id the provider currently queries for."""
        pass

    @abstractmethod
    async def configure(self) -> bool:
        """
        Prepare the provider for use.

        Returns:
            False when keys are missing or placeholders; never raises for that
        """
        pass

    @abstractmethod
    async def log_in(self, app_user_id: str) -> BillingCustomerInfo:
        """
        Identify the customer by the backend's stable user id.

        Raises:
            BillingSdkError: provider unreachable or not configured
        """
        pass

    @abstractmethod
    async def log_out(self) -> None:
        """Switch back to an anonymous customer."""
        pass

    @abstractmethod
    async def get_customer_info(self) -> BillingCustomerInfo:
        """
        Fetch the current customer's entitlements.

        Raises:
            BillingSdkError: provider unreachable or not configured
        """
        pass

    @abstractmethod
    async def get_offerings(self) -> Optional[Offering]:
        """
        Fetch the current offering, None if the project has none.

        Raises:
            BillingSdkError: provider unreachable or not configured
        """
        pass

    @abstractmethod
    async def purchase_package(self, package: BillingPackage, fetch_token: str) -> BillingCustomerInfo:
        """
        Record a store purchase for the current customer.

        Args:
            package: Package being bought
            fetch_token: Store receipt / purchase token

        Raises:
            BillingSdkError: purchase rejected, cancelled, or provider unreachable
        """
        pass

    @abstractmethod
    async def restore_purchases(self) -> BillingCustomerInfo:
        """
        Re-sync the customer's purchases.

        Raises:
            BillingSdkError: provider unreachable or not configured
        """
        pass

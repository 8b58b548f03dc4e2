"""Supplier-side buyer directory and customer resolution."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.models.organization import Organization, User
from app.models.wholesale import SyncPreference, WholesaleBuyer
from app.services.sync_errors import SyncNotFoundError, SyncStateError

logger = logging.getLogger(__name__)


class BuyerDirectory:
    """Looks up buyers by mobile and resolves them to customer organizations."""

    def __init__(self, db: Session):
        self.db = db

    def list_buyers(self, organization_id: int) -> List[WholesaleBuyer]:
        return (
            self.db.query(WholesaleBuyer)
            .filter(WholesaleBuyer.organization_id == organization_id)
            .order_by(WholesaleBuyer.name)
            .all()
        )

    def find_buyer(self, organization_id: int, mobile: str) -> Optional[WholesaleBuyer]:
        return (
            self.db.query(WholesaleBuyer)
            .filter(
                WholesaleBuyer.organization_id == organization_id,
                WholesaleBuyer.mobile == mobile,
            )
            .first()
        )

    def get_buyer(self, organization_id: int, buyer_id: int) -> WholesaleBuyer:
        buyer = self.db.get(WholesaleBuyer, buyer_id)
        if buyer is None or buyer.organization_id != organization_id:
            raise SyncNotFoundError("Buyer not found")
        return buyer

    def upsert_buyer(
        self,
        organization_id: int,
        name: str,
        mobile: str,
        email: Optional[str] = None,
        business_name: Optional[str] = None,
    ) -> WholesaleBuyer:
        """Find the buyer by mobile or add them. Does not commit."""
        buyer = self.find_buyer(organization_id, mobile)
        if buyer is None:
            buyer = WholesaleBuyer(
                organization_id=organization_id,
                name=name,
                mobile=mobile,
                email=email,
                business_name=business_name,
            )
            self.db.add(buyer)
            self.db.flush()
            logger.info("Added buyer %s (%s) for organization %s", buyer.id, mobile, organization_id)
        else:
            buyer.name = name or buyer.name
            if email:
                buyer.email = email
            if business_name:
                buyer.business_name = business_name
        return buyer

    def link_customer(self, organization_id: int, buyer_id: int, customer_tenant_id: Optional[int]) -> WholesaleBuyer:
        """Link a buyer to the customer organization they signed up as."""
        buyer = self.get_buyer(organization_id, buyer_id)
        if customer_tenant_id is not None:
            if customer_tenant_id == organization_id:
                raise SyncStateError("A buyer cannot be linked to the supplier's own organization")
            if self.db.get(Organization, customer_tenant_id) is None:
                raise SyncNotFoundError("Customer organization not found")
        try:
            buyer.customer_tenant_id = customer_tenant_id
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(buyer)
        logger.info("Buyer %s of organization %s linked to customer %s",
                    buyer_id, organization_id, customer_tenant_id)
        return buyer

    def set_sync_preference(self, organization_id: int, buyer_id: int, preference: str) -> WholesaleBuyer:
        buyer = self.get_buyer(organization_id, buyer_id)
        try:
            buyer.sync_preference = SyncPreference(preference).value
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(buyer)
        return buyer

    def active_users(self, organization_id: int) -> List[User]:
        return (
            self.db.query(User)
            .filter(User.organization_id == organization_id, User.is_active.is_(True))
            .order_by(User.id)
            .all()
        )

    def primary_user(self, organization_id: int) -> Optional[User]:
        """The user notifications for an organization are addressed to."""
        users = self.active_users(organization_id)
        return users[0] if users else None

    def resolve_customer(
        self, buyer: WholesaleBuyer
    ) -> Tuple[Optional[Organization], Optional[User], Optional[str]]:
        """Resolve a linked buyer to (organization, user, None) or (None, None, reason)."""
        if buyer.customer_tenant_id is None:
            return None, None, "Buyer is not a customer"
        if buyer.customer_tenant_id == buyer.organization_id:
            return None, None, "Buyer is linked to the supplier's own organization"
        organization = self.db.get(Organization, buyer.customer_tenant_id)
        if organization is None or not organization.is_active:
            return None, None, "Customer organization not active"
        user = self.primary_user(organization.id)
        if user is None:
            return None, None, "Customer user not found"
        return organization, user, None

"""Tests for dispatch, direct sync, manual approval and resend."""

from unittest.mock import MagicMock

import pytest

from app.models.notification import Notification
from app.models.product import Product
from app.models.receiving import FactoryReceiving
from app.models.supplier_sync import SupplierSync, SyncStatus, SyncType
from app.models.wholesale import OrderSyncStatus, WholesaleOrder
from app.services.notification_service import NotificationService
from app.services.supplier_sync_service import SupplierSyncService, group_order_items
from app.services.sync_errors import SyncNotFoundError, SyncPermissionError, SyncStateError


def _entries(db_session, order_id):
    return (
        db_session.query(SupplierSync)
        .filter(SupplierSync.wholesale_order_id == order_id)
        .order_by(SupplierSync.id)
        .all()
    )


class TestGrouping:
    """Order lines are merged per design and color."""

    def test_sizes_of_same_design_color_form_one_group(self, make_order):
        order = make_order([("D", "C", "M", 3), ("D", "C", "L", 2)])

        groups = group_order_items(order.items)

        assert len(groups) == 1
        assert groups[0].design == "D"
        assert groups[0].color == "C"
        assert groups[0].quantities == {"M": 3, "L": 2}
        assert groups[0].total_quantity == 5

    def test_repeated_size_is_summed(self, make_order):
        order = make_order([("D", "C", "M", 3), ("D", "C", "M", 4)])

        groups = group_order_items(order.items)

        assert groups[0].quantities == {"M": 7}

    def test_colors_stay_separate_in_first_seen_order(self, make_order):
        order = make_order([("D", "Blue", "M", 1), ("D", "Red", "M", 2), ("D", "Blue", "L", 1)])

        groups = group_order_items(order.items)

        assert [(g.design, g.color) for g in groups] == [("D", "Blue"), ("D", "Red")]
        assert groups[0].quantities == {"M": 1, "L": 1}


class TestDispatch:
    """Routing an order to its customer."""

    def test_no_buyer_record_sets_status_none(self, db_session, supplier_org, make_order):
        order = make_order([("D100", "Red", "M", 5)])

        result = SupplierSyncService(db_session).sync_order_to_customer(order.id, supplier_org.id)

        assert result["synced"] is False
        assert result["reason"] == "Buyer is not a customer"
        db_session.refresh(order)
        assert order.sync_status == OrderSyncStatus.NONE.value
        assert _entries(db_session, order.id) == []

    def test_unlinked_buyer_is_not_applicable(self, db_session, supplier_org, linked_buyer, make_order):
        linked_buyer.customer_tenant_id = None
        db_session.commit()
        order = make_order([("D100", "Red", "M", 5)])

        result = SupplierSyncService(db_session).sync_order_to_customer(order.id, supplier_org.id)

        assert result["synced"] is False
        db_session.refresh(order)
        assert order.sync_status == OrderSyncStatus.NONE.value

    def test_inactive_customer_leaves_status_unchanged(
        self, db_session, supplier_org, customer_org, linked_buyer, make_order
    ):
        customer_org.is_active = False
        db_session.commit()
        order = make_order([("D100", "Red", "M", 5)])
        order.sync_status = OrderSyncStatus.REJECTED.value
        db_session.commit()

        result = SupplierSyncService(db_session).sync_order_to_customer(order.id, supplier_org.id)

        assert result["synced"] is False
        assert "not active" in result["reason"]
        db_session.refresh(order)
        assert order.sync_status == OrderSyncStatus.REJECTED.value

    def test_other_supplier_cannot_dispatch(self, db_session, customer_org, linked_buyer, make_order):
        order = make_order([("D100", "Red", "M", 5)])

        with pytest.raises(SyncPermissionError):
            SupplierSyncService(db_session).sync_order_to_customer(order.id, customer_org.id)

    def test_missing_order(self, db_session, supplier_org):
        with pytest.raises(SyncNotFoundError):
            SupplierSyncService(db_session).sync_order_to_customer(9999, supplier_org.id)


class TestDirectSync:
    """Immediate application for buyers with the direct preference."""

    def test_creates_product_with_only_ordered_color(
        self, db_session, supplier_org, customer_org, supplier_catalog, linked_buyer, make_order, stock_of
    ):
        order = make_order([("D100", "Red", "M", 5), ("D100", "Red", "L", 3)])

        result = SupplierSyncService(db_session).sync_order_to_customer(order.id, supplier_org.id)

        assert result["synced"] is True
        assert result["itemsCount"] == 1
        product = (
            db_session.query(Product)
            .filter(Product.organization_id == customer_org.id, Product.design == "D100")
            .one()
        )
        assert [c.color for c in product.colors] == ["Red"]
        assert product.synced_from_supplier is True
        assert stock_of(customer_org.id, "D100", "Red", "M") == 5
        assert stock_of(customer_org.id, "D100", "Red", "L") == 3
        # Sizes cloned from the supplier start at zero
        assert stock_of(customer_org.id, "D100", "Red", "S") == 0
        # Supplier stock is untouched
        assert stock_of(supplier_org.id, "D100", "Red", "M") == 50

    def test_records_ledger_receipts_and_order_state(
        self, db_session, supplier_org, customer_org, supplier_catalog, linked_buyer, make_order
    ):
        order = make_order([("D100", "Red", "M", 5), ("D100", "Blue", "L", 2)])

        result = SupplierSyncService(db_session).sync_order_to_customer(order.id, supplier_org.id)

        entry = db_session.get(SupplierSync, result["supplierSyncId"])
        assert entry.status == SyncStatus.SYNCED.value
        assert entry.sync_type == SyncType.CREATE.value
        assert entry.customer_tenant_id == customer_org.id
        assert len(entry.items_synced) == 2
        assert sorted(entry.factory_receiving_ids) == sorted(result["factoryReceivingIds"])

        receipts = db_session.query(FactoryReceiving).filter(FactoryReceiving.id.in_(entry.factory_receiving_ids)).all()
        assert len(receipts) == 2
        for receipt in receipts:
            assert receipt.organization_id == customer_org.id
            assert receipt.source_type == "supplier-sync"
            assert receipt.is_read_only is True
            assert receipt.supplier_wholesale_order_id == order.id
            assert receipt.supplier_sync_id == entry.id
            assert receipt.batch_id == order.challan_number

        db_session.refresh(order)
        assert order.sync_status == OrderSyncStatus.SYNCED.value
        assert order.synced_to_customer is True
        assert order.synced_at is not None
        assert order.current_sync_entry_id == entry.id

    def test_missing_supplier_design_skips_only_that_group(
        self, db_session, supplier_org, customer_org, supplier_catalog, linked_buyer, make_order, stock_of
    ):
        order = make_order([("D100", "Red", "M", 5), ("NOPE", "Green", "M", 4)])

        result = SupplierSyncService(db_session).sync_order_to_customer(order.id, supplier_org.id)

        assert result["synced"] is True
        assert result["itemsCount"] == 1
        entry = db_session.get(SupplierSync, result["supplierSyncId"])
        assert [i["design"] for i in entry.items_synced] == ["D100"]
        assert entry.sync_metadata["skippedGroups"] == [{"design": "NOPE", "color": "Green"}]
        assert stock_of(customer_org.id, "D100", "Red", "M") == 5
        assert stock_of(customer_org.id, "NOPE", "Green", "M") is None

    def test_existing_customer_stock_is_incremented(
        self, db_session, supplier_org, customer_org, supplier_catalog, linked_buyer, make_order, stock_of
    ):
        service = SupplierSyncService(db_session)
        service.sync_order_to_customer(make_order([("D100", "Red", "M", 5)]).id, supplier_org.id)
        service.sync_order_to_customer(make_order([("D100", "Red", "M", 2)]).id, supplier_org.id)

        assert stock_of(customer_org.id, "D100", "Red", "M") == 7

    def test_unknown_size_row_is_created(
        self, db_session, supplier_org, customer_org, supplier_catalog, linked_buyer, make_order, stock_of
    ):
        order = make_order([("D100", "Red", "XXL", 4)])

        SupplierSyncService(db_session).sync_order_to_customer(order.id, supplier_org.id)

        assert stock_of(customer_org.id, "D100", "Red", "XXL") == 4

    def test_notifies_customer(
        self, db_session, supplier_org, customer_user, supplier_catalog, linked_buyer, make_order
    ):
        order = make_order([("D100", "Red", "M", 5)])

        SupplierSyncService(db_session).sync_order_to_customer(order.id, supplier_org.id)

        notification = db_session.query(Notification).filter(Notification.user_id == customer_user.id).one()
        assert notification.type == "stock_received"
        assert notification.severity == "success"

    def test_notification_failure_does_not_affect_sync(
        self, db_session, supplier_org, customer_org, supplier_catalog, linked_buyer, make_order, stock_of
    ):
        broken_db = MagicMock()
        broken_db.commit.side_effect = RuntimeError("notification store down")
        service = SupplierSyncService(db_session, notifier=NotificationService(broken_db))
        order = make_order([("D100", "Red", "M", 5)])

        result = service.sync_order_to_customer(order.id, supplier_org.id)

        assert result["synced"] is True
        broken_db.rollback.assert_called_once()
        assert stock_of(customer_org.id, "D100", "Red", "M") == 5

    def test_infrastructure_failure_rolls_back_and_records_failed_entry(
        self, db_session, supplier_org, customer_org, supplier_catalog, linked_buyer, make_order, stock_of,
        monkeypatch,
    ):
        service = SupplierSyncService(db_session)
        order = make_order([("D100", "Red", "M", 5)])

        def boom(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(service.inventory, "add_stock", boom)

        with pytest.raises(RuntimeError):
            service.sync_order_to_customer(order.id, supplier_org.id)

        entries = _entries(db_session, order.id)
        assert [e.status for e in entries] == [SyncStatus.FAILED.value]
        assert entries[0].error_message == "disk full"
        assert db_session.query(FactoryReceiving).count() == 0
        assert stock_of(customer_org.id, "D100", "Red", "M") is None
        db_session.refresh(order)
        assert order.sync_status == OrderSyncStatus.NONE.value


class TestManualApproval:
    """Pending requests, accept and reject."""

    def test_manual_preference_never_auto_applies(
        self, db_session, supplier_org, customer_org, customer_user, supplier_catalog, manual_buyer, make_order,
        stock_of,
    ):
        order = make_order([("D100", "Red", "M", 5)])

        result = SupplierSyncService(db_session).sync_order_to_customer(order.id, supplier_org.id)

        assert result["pending"] is True
        entry = db_session.get(SupplierSync, result["syncRequestId"])
        assert entry.status == SyncStatus.PENDING.value
        assert entry.items_synced[0]["quantities"] == {"M": 5}
        assert entry.sync_metadata["challanNumber"] == order.challan_number
        assert stock_of(customer_org.id, "D100", "Red", "M") is None
        db_session.refresh(order)
        assert order.sync_status == OrderSyncStatus.PENDING.value
        assert [r.status for r in order.sync_requests] == ["pending"]
        assert order.sync_requests[0].request_id == entry.id
        notification = db_session.query(Notification).filter(Notification.user_id == customer_user.id).one()
        assert notification.type == "sync_request"

    def test_accept_applies_stored_items_once(
        self, db_session, supplier_org, customer_org, supplier_catalog, manual_buyer, make_order, stock_of,
        customer_identity,
    ):
        service = SupplierSyncService(db_session)
        order = make_order([("D100", "Red", "M", 5)])
        sync_id = service.sync_order_to_customer(order.id, supplier_org.id)["syncRequestId"]

        result = service.accept(sync_id, customer_identity)

        assert result["syncId"] == sync_id
        assert result["itemsCount"] == 1
        assert result["acceptedBy"] == "Ram Kumar"
        assert stock_of(customer_org.id, "D100", "Red", "M") == 5

        with pytest.raises(SyncStateError, match="already processed"):
            service.accept(sync_id, customer_identity)
        assert stock_of(customer_org.id, "D100", "Red", "M") == 5

        entry = db_session.get(SupplierSync, sync_id)
        assert entry.status == SyncStatus.ACCEPTED.value
        assert entry.approved_by_user_id == customer_identity.user_id
        assert entry.approved_at is not None
        assert len(entry.factory_receiving_ids) == 1
        db_session.refresh(order)
        assert order.sync_status == OrderSyncStatus.ACCEPTED.value
        assert order.current_sync_entry_id == sync_id
        assert order.sync_requests[0].status == "accepted"
        assert order.sync_requests[0].responded_by_name == "Ram Kumar"

    def test_accept_uses_items_stored_at_request_time(
        self, db_session, supplier_org, customer_org, supplier_catalog, manual_buyer, make_order, stock_of,
        customer_identity,
    ):
        service = SupplierSyncService(db_session)
        order = make_order([("D100", "Red", "M", 5)])
        sync_id = service.sync_order_to_customer(order.id, supplier_org.id)["syncRequestId"]
        order.items[0].quantity = 50
        db_session.commit()

        service.accept(sync_id, customer_identity)

        assert stock_of(customer_org.id, "D100", "Red", "M") == 5

    def test_accept_by_other_organization_is_forbidden(
        self, db_session, supplier_org, supplier_catalog, manual_buyer, make_order, supplier_identity
    ):
        service = SupplierSyncService(db_session)
        sync_id = service.sync_order_to_customer(make_order([("D100", "Red", "M", 5)]).id, supplier_org.id)[
            "syncRequestId"
        ]

        with pytest.raises(SyncPermissionError):
            service.accept(sync_id, supplier_identity)

    def test_accept_unknown_request(self, db_session, customer_identity):
        with pytest.raises(SyncNotFoundError):
            SupplierSyncService(db_session).accept(4242, customer_identity)

    def test_reject_changes_no_stock_and_notifies_supplier(
        self, db_session, supplier_org, supplier_user, customer_org, supplier_catalog, manual_buyer, make_order,
        stock_of, customer_identity,
    ):
        service = SupplierSyncService(db_session)
        order = make_order([("D100", "Red", "M", 5)])
        sync_id = service.sync_order_to_customer(order.id, supplier_org.id)["syncRequestId"]

        result = service.reject(sync_id, customer_identity, "Wrong colors")

        assert result["reason"] == "Wrong colors"
        assert result["rejectedBy"] == "Ram Kumar"
        assert stock_of(customer_org.id, "D100", "Red", "M") is None
        entry = db_session.get(SupplierSync, sync_id)
        assert entry.status == SyncStatus.REJECTED.value
        assert entry.rejection_reason == "Wrong colors"
        db_session.refresh(order)
        assert order.sync_status == OrderSyncStatus.REJECTED.value
        assert order.sync_requests[0].status == "rejected"
        assert order.sync_requests[0].rejection_reason == "Wrong colors"
        notification = db_session.query(Notification).filter(Notification.user_id == supplier_user.id).one()
        assert notification.type == "sync_rejected"
        assert "Wrong colors" in notification.message

        with pytest.raises(SyncStateError):
            service.reject(sync_id, customer_identity, "again")
        with pytest.raises(SyncStateError):
            service.accept(sync_id, customer_identity)

    def test_reject_without_reason(
        self, db_session, supplier_org, supplier_catalog, manual_buyer, make_order, customer_identity
    ):
        service = SupplierSyncService(db_session)
        sync_id = service.sync_order_to_customer(make_order([("D100", "Red", "M", 5)]).id, supplier_org.id)[
            "syncRequestId"
        ]

        result = service.reject(sync_id, customer_identity)

        assert result["reason"] == "No reason provided"


class TestResend:
    """Resending rejected or never-synced orders."""

    def test_refused_while_pending(self, db_session, supplier_org, supplier_catalog, manual_buyer, make_order):
        service = SupplierSyncService(db_session)
        order = make_order([("D100", "Red", "M", 5)])
        service.sync_order_to_customer(order.id, supplier_org.id)

        with pytest.raises(SyncStateError, match="already pending"):
            service.resend(order.id, supplier_org.id)

    def test_refused_when_synced(self, db_session, supplier_org, supplier_catalog, linked_buyer, make_order):
        service = SupplierSyncService(db_session)
        order = make_order([("D100", "Red", "M", 5)])
        service.sync_order_to_customer(order.id, supplier_org.id)

        with pytest.raises(SyncStateError, match="already synced"):
            service.resend(order.id, supplier_org.id)

    def test_resend_after_rejection_cancels_old_entry(
        self, db_session, supplier_org, supplier_catalog, manual_buyer, make_order, customer_identity
    ):
        service = SupplierSyncService(db_session)
        order = make_order([("D100", "Red", "M", 5)])
        first_id = service.sync_order_to_customer(order.id, supplier_org.id)["syncRequestId"]
        service.reject(first_id, customer_identity, "Not now")

        result = service.resend(order.id, supplier_org.id)

        entries = _entries(db_session, order.id)
        assert [e.status for e in entries] == [SyncStatus.CANCELLED.value, SyncStatus.PENDING.value]
        assert entries[0].rejection_reason == "Not now"
        assert result["syncRequestId"] == entries[1].id
        db_session.refresh(order)
        assert order.sync_status == OrderSyncStatus.PENDING.value
        assert [r.status for r in order.sync_requests] == ["rejected", "pending"]

    def test_second_rejection_and_resend_keeps_full_history(
        self, db_session, supplier_org, supplier_catalog, manual_buyer, make_order, customer_identity
    ):
        service = SupplierSyncService(db_session)
        order = make_order([("D100", "Red", "M", 5)])
        first_id = service.sync_order_to_customer(order.id, supplier_org.id)["syncRequestId"]
        service.reject(first_id, customer_identity)
        second_id = service.resend(order.id, supplier_org.id)["syncRequestId"]
        service.reject(second_id, customer_identity)

        service.resend(order.id, supplier_org.id)

        statuses = [e.status for e in _entries(db_session, order.id)]
        assert statuses == [SyncStatus.CANCELLED.value, SyncStatus.CANCELLED.value, SyncStatus.PENDING.value]

    def test_resend_after_switching_to_direct_applies_stock(
        self, db_session, supplier_org, customer_org, supplier_catalog, manual_buyer, make_order, stock_of,
        customer_identity,
    ):
        service = SupplierSyncService(db_session)
        order = make_order([("D100", "Red", "M", 5)])
        sync_id = service.sync_order_to_customer(order.id, supplier_org.id)["syncRequestId"]
        service.reject(sync_id, customer_identity)
        manual_buyer.sync_preference = "direct"
        db_session.commit()

        result = service.resend(order.id, supplier_org.id)

        assert result["synced"] is True
        assert stock_of(customer_org.id, "D100", "Red", "M") == 5
        db_session.refresh(order)
        assert order.sync_status == OrderSyncStatus.SYNCED.value

    def test_resend_of_never_synced_order(
        self, db_session, supplier_org, customer_org, supplier_catalog, make_order, linked_buyer, stock_of
    ):
        service = SupplierSyncService(db_session)
        linked_buyer.customer_tenant_id = None
        db_session.commit()
        order = make_order([("D100", "Red", "M", 5)])
        service.sync_order_to_customer(order.id, supplier_org.id)
        linked_buyer.customer_tenant_id = customer_org.id
        db_session.commit()

        result = service.resend(order.id, supplier_org.id)

        assert result["synced"] is True
        assert stock_of(customer_org.id, "D100", "Red", "M") == 5

    def test_resend_of_other_suppliers_order_is_forbidden(
        self, db_session, customer_org, make_order
    ):
        order = make_order([("D100", "Red", "M", 5)])

        with pytest.raises(SyncPermissionError):
            SupplierSyncService(db_session).resend(order.id, customer_org.id)

    def test_deleted_order_cannot_be_resent(self, db_session, supplier_org, make_order):
        order = make_order([("D100", "Red", "M", 5)])
        order.soft_delete()
        db_session.commit()

        with pytest.raises(SyncNotFoundError):
            SupplierSyncService(db_session).resend(order.id, supplier_org.id)

        assert db_session.get(WholesaleOrder, order.id).is_deleted is True

from sqlalchemy import func, select

from repair_tracker.events import EventType
from repair_tracker.models import ActivityLog, ERPSyncLog, RepairOrder
from repair_tracker.schemas import SyncAction
from repair_tracker.services.exceptions import ApiError
from repair_tracker.services.integration import ERPSyncService
from repair_tracker.services.integration.erp_mapping import MAPPED_FIELDS
from repair_tracker.services.integration.task_dispatcher import ERP_MANUAL_SYNC
from tests.fakes import FakeDispatcher, FakeERPClient, make_details, make_summary


def make_service(db_session, erp_client, **kwargs):
    kwargs.setdefault('request_delay', 0)
    return ERPSyncService(db_session, erp_client, current_user="7", **kwargs)


async def load_order(db_session, order_id):
    db_session.expire_all()
    return (await db_session.execute(select(RepairOrder).filter(RepairOrder.id == order_id))).scalars().one()


async def test_sync_one_creates_then_updates_idempotently(db_session):
    client = FakeERPClient(details={5: make_details(5, condition="OH")})
    service = make_service(db_session, client)

    first = await service.sync_one(5)
    assert first.success
    assert first.data.action is SyncAction.CREATE
    assert first.data.ro_number == 1005

    order = await load_order(db_session, first.data.local_id)
    snapshot = {field: getattr(order, field) for field in MAPPED_FIELDS}
    first_synced_at = order.erp_last_sync_at
    notes = order.notes
    assert notes == "Imported from ERP PO#5\nCondition: OH"

    second = await service.sync_one(5)
    assert second.success
    assert second.data.action is SyncAction.UPDATE
    assert second.data.local_id == first.data.local_id

    order = await load_order(db_session, first.data.local_id)
    assert {field: getattr(order, field) for field in MAPPED_FIELDS} == snapshot
    assert order.erp_last_sync_at >= first_synced_at
    assert order.erp_sync_status == 'SYNCED'
    assert order.notes == notes

    count = (await db_session.execute(select(func.count(RepairOrder.id)))).scalar()
    assert count == 1


async def test_sync_one_adopts_spreadsheet_row_by_ro_number(db_session, order_factory):
    existing = await order_factory(1005, current_status="IN WORK", notes="Called shop")
    service = make_service(db_session, FakeERPClient(details={5: make_details(5, condition="NEW")}))

    result = await service.sync_one(5)

    assert result.data.action is SyncAction.UPDATE
    assert result.data.local_id == existing.id
    order = await load_order(db_session, existing.id)
    assert order.erp_po_id == "5"
    assert order.current_status == "RECEIVED"
    assert order.notes == "Called shop\nCondition: NEW"


async def test_sync_one_writes_activity_row(db_session):
    service = make_service(db_session, FakeERPClient())

    result = await service.sync_one(3)

    rows = (await db_session.execute(
        select(ActivityLog).filter(ActivityLog.repair_order_id == result.data.local_id)
    )).scalars().all()
    assert [row.action for row in rows] == ['ERP_SYNC']
    assert rows[0].user_id == "system"
    assert "PO #3" in rows[0].new_value


async def test_sync_one_failure_is_failed_result(db_session):
    service = make_service(db_session, FakeERPClient(failing_ids={9}))

    result = await service.sync_one(9)

    assert not result.success
    assert result.error_code == 'API_ERROR'


async def test_sync_one_unparseable_order_number(db_session):
    client = FakeERPClient(details={4: make_details(4, po_no="REPAIR")})

    result = await make_service(db_session, client).sync_one(4)

    assert not result.success
    assert result.error_code == 'VALIDATION_ERROR'


async def test_sync_many_isolates_failures(db_session):
    client = FakeERPClient(failing_ids={3})
    service = make_service(db_session, client)

    result = await service.sync_many([1, 2, 3, 4, 5])

    assert result.success
    summary = result.data
    assert summary.processed == 5
    assert summary.succeeded == 4
    assert summary.failed == 1
    assert client.requested_details == [1, 2, 3, 4, 5]
    assert len(summary.errors) == 1
    assert summary.errors[0].startswith("PO 3:")

    logs = (await db_session.execute(select(ERPSyncLog))).scalars().all()
    assert [(log.operation_type, log.status) for log in logs] == [('REPAIR_ORDER_SYNC_MANY', 'PARTIAL')]
    assert logs[0].executed_by == "7"


async def test_sync_all_full_page_requests_next_page(db_session):
    client = FakeERPClient(pages=[
        [make_summary(i) for i in range(1, 51)],
        [make_summary(i) for i in range(51, 61)],
    ])
    service = make_service(db_session, client, page_size=50)

    result = await service.sync_all()

    assert result.success
    assert client.requested_pages == [1, 2]
    assert result.data.pages_fetched == 2
    assert result.data.created == 60


async def test_sync_all_short_page_stops(db_session):
    client = FakeERPClient(pages=[[make_summary(i) for i in range(1, 31)]])
    service = make_service(db_session, client, page_size=50)

    result = await service.sync_all()

    assert client.requested_pages == [1]
    assert result.data.processed == 30


async def test_sync_all_respects_max_pages(db_session):
    client = FakeERPClient(pages=[[make_summary(1), make_summary(2)], [make_summary(3), make_summary(4)]])

    result = await make_service(db_session, client).sync_all(page_size=2, max_pages=1)

    assert client.requested_pages == [1]
    assert result.data.processed == 2


async def test_sync_all_list_failure_without_progress_fails(db_session):
    client = FakeERPClient(list_error=ApiError("Failed to connect to ERP system"))

    result = await make_service(db_session, client).sync_all()

    assert not result.success
    assert result.error_code == 'API_ERROR'
    logs = (await db_session.execute(select(ERPSyncLog))).scalars().all()
    assert logs[0].status == 'ERROR'


async def test_sync_all_isolates_item_failures(db_session):
    client = FakeERPClient(pages=[[make_summary(i) for i in range(1, 6)]], failing_ids={3})

    result = await make_service(db_session, client, page_size=10).sync_all()

    assert result.success
    assert client.requested_details == [1, 2, 3, 4, 5]
    assert (result.data.processed, result.data.succeeded, result.data.failed) == (5, 4, 1)
    assert result.data.errors[0].startswith("PO 3:")
    logs = (await db_session.execute(select(ERPSyncLog))).scalars().all()
    assert [(log.operation_type, log.status) for log in logs] == [('REPAIR_ORDER_SYNC_ALL', 'PARTIAL')]


async def test_sync_all_empty_page_after_full_page_stops(db_session):
    client = FakeERPClient(pages=[[make_summary(1), make_summary(2), make_summary(3)]])

    result = await make_service(db_session, client).sync_all(page_size=3)

    assert result.success
    assert client.requested_pages == [1, 2]
    assert result.data.pages_fetched == 2
    assert result.data.processed == 3
    assert not result.data.aborted


async def test_sync_all_list_failure_after_progress_is_partial(db_session):
    client = FakeERPClient(pages=[[make_summary(1), make_summary(2)]], failing_pages={2})

    result = await make_service(db_session, client).sync_all(page_size=2)

    assert result.success
    assert result.data.aborted
    assert result.data.created == 2
    assert result.data.errors == ["Page 2: Failed to fetch ERP page 2"]
    count = (await db_session.execute(select(func.count(RepairOrder.id)))).scalar()
    assert count == 2
    logs = (await db_session.execute(select(ERPSyncLog))).scalars().all()
    assert logs[0].status == 'PARTIAL'


async def test_sync_events_toggle_session_state(db_session, event_bus, session_state):
    seen = []
    event_bus.subscribe(EventType.SYNC_STARTED, lambda event, payload: seen.append(event))
    event_bus.subscribe(EventType.SYNC_FINISHED, lambda event, payload: seen.append(event))
    session_state.stats.set("cached")

    service = make_service(db_session, FakeERPClient(pages=[[make_summary(1)]]), event_bus=event_bus)
    await service.sync_all()

    assert seen == [EventType.SYNC_STARTED, EventType.SYNC_FINISHED]
    assert session_state.sync_in_progress.get() is False
    assert session_state.stats.get() is None


async def test_fetch_external_list(db_session):
    client = FakeERPClient(pages=[[make_summary(1), make_summary(2)]])

    result = await make_service(db_session, client).fetch_external_list(page_size=25, page=1)

    assert [item.external_id for item in result.data] == [1, 2]


async def test_trigger_background_sync(db_session):
    dispatcher = FakeDispatcher()
    service = make_service(db_session, FakeERPClient(), dispatcher=dispatcher)

    result = await service.trigger_background_sync(7)

    assert result.success
    assert result.data.run_id == "run_1"
    assert dispatcher.calls == [(ERP_MANUAL_SYNC, {'userId': 7})]


async def test_trigger_background_sync_without_dispatcher(db_session):
    result = await make_service(db_session, FakeERPClient()).trigger_background_sync(7)

    assert not result.success
    assert result.error_code == 'EXTERNAL_SERVICE_ERROR'

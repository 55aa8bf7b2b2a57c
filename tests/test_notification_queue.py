from datetime import date, timedelta

import pytest
from sqlalchemy import select

from repair_tracker.dates import format_date_us
from repair_tracker.events import EventType
from repair_tracker.models import NotificationQueueItem, Shop, User
from repair_tracker.schemas import NotificationCreateSchema, NotificationStatus, NotificationType
from repair_tracker.services.exceptions import ValidationError
from repair_tracker.services.integration import NotificationQueueService
from repair_tracker.services.integration.task_dispatcher import SEND_APPROVED_EMAIL
from tests.fakes import FakeDispatcher, FakeEmailSender

EMAIL_PAYLOAD = {
    'to_address': 'quotes@acmeaero.com',
    'subject': 'Follow-up: RO# G1001',
    'body': 'Hi Team, any update on the quote?',
}


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def service(db_session, event_bus, dispatcher, email_sender, email_config):
    return NotificationQueueService(
        db_session,
        current_user="1",
        event_bus=event_bus,
        dispatcher=dispatcher,
        email_sender=email_sender,
        email_config=email_config,
    )


async def test_enqueue_defaults_to_pending_and_transition_is_visible(service, user, order_factory):
    order = await order_factory(1001)

    item_id = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id)

    item = await service.fetch_by_id(item_id)
    assert item.status == NotificationStatus.PENDING_APPROVAL.value
    assert item.payload['to_address'] == 'quotes@acmeaero.com'

    assert await service.transition(item_id, NotificationStatus.SENT) is True
    item = await service.fetch_by_id(item_id)
    assert item.status == NotificationStatus.SENT.value


async def test_enqueue_returns_existing_pending_item(service, user, order_factory):
    order = await order_factory(1001)

    first = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id)
    second = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id)

    assert first == second
    items = (await service.db_session.execute(select(NotificationQueueItem))).scalars().all()
    assert len(items) == 1


async def test_enqueue_with_explicit_status_skips_dedup(service, user, order_factory):
    order = await order_factory(1001)

    first = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id)
    second = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id,
                                   status=NotificationStatus.APPROVED)

    assert first != second
    assert (await service.fetch_by_id(second)).status == NotificationStatus.APPROVED.value


async def test_enqueue_rejects_payload_for_wrong_type(service, user, order_factory):
    order = await order_factory(1001)

    with pytest.raises(ValidationError) as exc_info:
        await service.enqueue({'title': 'Call shop'}, NotificationType.EMAIL_DRAFT, user.id, order.id)
    assert exc_info.value.details['errors']


async def test_enqueue_publishes_change(service, event_bus, user, order_factory):
    order = await order_factory(1001)
    seen = []
    event_bus.subscribe(EventType.NOTIFICATIONS_CHANGED, lambda event, payload: seen.append(payload))

    item_id = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id)

    assert seen == [{'notification_id': item_id}]


async def test_transition_unknown_item_or_status_returns_false(service, user, order_factory):
    order = await order_factory(1001)
    item_id = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id)

    assert await service.transition(9999, NotificationStatus.SENT) is False
    assert await service.transition(item_id, "DELIVERED") is False
    assert (await service.fetch_by_id(item_id)).status == NotificationStatus.PENDING_APPROVAL.value


async def test_list_pending_joins_order_newest_first(service, user, order_factory):
    first_order = await order_factory(1001, shop_name="Acme Aero")
    second_order = await order_factory(1002, shop_name="Jet Parts")
    first = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, first_order.id)
    second = await service.enqueue({'title': 'Call shop', 'due_date': '2024-07-01'},
                                   NotificationType.TASK_REMINDER, user.id, second_order.id)
    await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, first_order.id,
                          status=NotificationStatus.SENT)

    result = await service.get_pending()

    assert result.success
    assert [item.id for item in result.data] == [second, first]
    assert result.data[0].ro_number == 1002
    assert result.data[0].shop_name == "Jet Parts"
    assert result.data[1].type is NotificationType.EMAIL_DRAFT


async def test_create_notification_for_missing_order(service, user):
    data = NotificationCreateSchema(repair_order_id=404, type=NotificationType.EMAIL_DRAFT, payload=EMAIL_PAYLOAD)

    result = await service.create_notification(data, owner=user.id)

    assert not result.success
    assert result.error_code == 'NOT_FOUND'


async def test_approve_dispatches_delivery_task(service, dispatcher, user, order_factory):
    order = await order_factory(1001)
    item_id = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id)

    result = await service.approve(item_id, user_id=user.id)

    assert result.success
    assert result.data.run_id == "run_1"
    assert result.data.public_access_token == "pat_1"
    assert dispatcher.calls == [(SEND_APPROVED_EMAIL, {'notification_id': item_id, 'user_id': user.id})]
    assert (await service.fetch_by_id(item_id)).status == NotificationStatus.APPROVED.value


async def test_approve_only_pending_items(service, user, order_factory):
    order = await order_factory(1001)
    item_id = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id)
    await service.transition(item_id, NotificationStatus.REJECTED)

    conflict = await service.approve(item_id, user_id=user.id)
    missing = await service.approve(9999, user_id=user.id)

    assert conflict.error_code == 'CONFLICT_ERROR'
    assert missing.error_code == 'NOT_FOUND'


async def test_approve_dispatch_failure_keeps_item_approved(db_session, user, order_factory, email_config):
    service = NotificationQueueService(db_session, dispatcher=FakeDispatcher(fail=True),
                                       email_sender=FakeEmailSender(), email_config=email_config)
    order = await order_factory(1001)
    item_id = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id)

    result = await service.approve(item_id, user_id=user.id)

    assert not result.success
    assert result.error_code == 'EXTERNAL_SERVICE_ERROR'
    assert (await service.fetch_by_id(item_id)).status == NotificationStatus.APPROVED.value


async def test_reject(service, user, order_factory):
    order = await order_factory(1001)
    item_id = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id)

    result = await service.reject(item_id)

    assert result.success
    assert result.data.status is NotificationStatus.REJECTED
    again = await service.reject(item_id)
    assert again.error_code == 'CONFLICT_ERROR'


async def test_deliver_approved_email_updates_order_dates(service, email_sender, user, order_factory):
    order = await order_factory(1001, next_date_to_update="01/01/24")
    item_id = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id,
                                    status=NotificationStatus.APPROVED)

    result = await service.deliver_approved(item_id)

    assert result.success
    assert result.data.action == 'sent'
    assert email_sender.sent[0]['to'] == 'quotes@acmeaero.com'
    assert email_sender.sent[0]['in_reply_to'] is None

    item = await service.fetch_by_id(item_id)
    assert item.status == NotificationStatus.SENT.value
    assert item.outlook_message_id == result.data.message_id
    assert item.outlook_conversation_id == result.data.message_id

    today = date.today()
    assert order.last_date_updated == format_date_us(today)
    assert order.next_date_to_update == format_date_us(today + timedelta(days=7))


async def test_deliver_replies_in_existing_thread(service, email_sender, user, order_factory):
    order = await order_factory(1001)
    first = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id,
                                  status=NotificationStatus.APPROVED)
    await service.deliver_approved(first)
    second = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id,
                                   status=NotificationStatus.APPROVED)

    await service.deliver_approved(second)

    first_message_id = email_sender.sent[0]['message_id']
    assert email_sender.sent[1]['in_reply_to'] == first_message_id
    assert (await service.get_email_thread_for_order(order.id))['conversation_id'] == first_message_id


async def test_deliver_is_skipped_for_final_items(service, email_sender, user, order_factory):
    order = await order_factory(1001)
    item_id = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id,
                                    status=NotificationStatus.APPROVED)
    await service.deliver_approved(item_id)

    result = await service.deliver_approved(item_id)

    assert result.success
    assert result.data.action == 'skipped'
    assert len(email_sender.sent) == 1


async def test_deliver_requires_approval(service, user, order_factory):
    order = await order_factory(1001)
    item_id = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id)

    result = await service.deliver_approved(item_id)

    assert result.error_code == 'CONFLICT_ERROR'


async def test_deliver_failure_marks_item_failed(db_session, user, order_factory, email_config):
    service = NotificationQueueService(db_session, email_sender=FakeEmailSender(fail=True),
                                       email_config=email_config)
    order = await order_factory(1001)
    item_id = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id,
                                    status=NotificationStatus.APPROVED)

    result = await service.deliver_approved(item_id)

    assert result.error_code == 'EXTERNAL_SERVICE_ERROR'
    assert (await service.fetch_by_id(item_id)).status == NotificationStatus.FAILED.value


async def test_deliver_task_reminder_emails_owner(service, email_sender, user, order_factory):
    order = await order_factory(1001)
    item_id = await service.enqueue(
        {'title': 'Call Acme about quote', 'due_date': '2024-07-01', 'notes': 'Ask for lead time'},
        NotificationType.TASK_REMINDER, user.id, order.id, status=NotificationStatus.APPROVED,
    )

    result = await service.deliver_approved(item_id)

    assert result.success
    sent = email_sender.sent[0]
    assert sent['to'] == user.email
    assert sent['subject'] == "Reminder: Call Acme about quote"
    assert "07/01/24" in sent['body']
    assert "Ask for lead time" in sent['body']
    assert f"https://tracker.genthrust.net/repair-orders/{order.id}" in sent['body']


async def test_queue_overdue_followups(service, db_session, user, order_factory):
    today = date.today()
    stale = await order_factory(1001, shop_name="Acme Aero",
                                current_status_date=(today - timedelta(days=10)).isoformat())
    await order_factory(1002, current_status_date=(today - timedelta(days=3)).isoformat())
    await order_factory(1003, current_status="IN WORK",
                        current_status_date=(today - timedelta(days=30)).isoformat())
    unknown_shop = await order_factory(1004, shop_name="Nowhere Repair", current_status=" waiting quote ",
                                       current_status_date=format_date_us(today - timedelta(days=8)))
    db_session.add(Shop(business_name="ACME AERO", email="quotes@acmeaero.com"))
    await db_session.commit()

    result = await service.queue_overdue_followups(days=7)

    assert result.data == {'overdue': 2, 'queued': 2}
    stale_item = await service.find_pending_for_order(stale.id)
    assert stale_item.payload['to_address'] == "quotes@acmeaero.com"
    assert stale_item.payload['subject'] == "Follow-up: RO# G1001"
    assert "Fuel Pump" in stale_item.payload['body']
    unknown_item = await service.find_pending_for_order(unknown_shop.id)
    assert unknown_item.payload['to_address'] == "quotes@genthrust.net"

    again = await service.queue_overdue_followups(days=7)
    assert again.data == {'overdue': 2, 'queued': 0}


async def test_queue_overdue_followups_requires_a_user(service, order_factory):
    await order_factory(1001, current_status_date="2020-01-01")

    result = await service.queue_overdue_followups()

    assert result.error_code == 'VALIDATION_ERROR'


async def test_owner_is_first_user(service, db_session, user, order_factory):
    db_session.add(User(email="second@genthrust.net"))
    await order_factory(1001, current_status_date="2020-01-01")
    await db_session.commit()

    await service.queue_overdue_followups()

    item = (await db_session.execute(select(NotificationQueueItem))).scalars().one()
    assert item.user_id == user.id


async def test_record_delivery_ids_feeds_email_thread(service, user, order_factory):
    order = await order_factory(1001)
    item_id = await service.enqueue(EMAIL_PAYLOAD, NotificationType.EMAIL_DRAFT, user.id, order.id,
                                    status=NotificationStatus.SENT)

    assert await service.get_email_thread_for_order(order.id) is None
    assert await service.record_delivery_ids(item_id, "<sent-1@genthrust.net>", "conv-1")
    assert not await service.record_delivery_ids(9999, "<missing@genthrust.net>")

    thread = await service.get_email_thread_for_order(order.id)
    assert thread == {'message_id': "<sent-1@genthrust.net>", 'conversation_id': "conv-1"}

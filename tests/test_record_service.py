from datetime import datetime, timedelta, timezone

import pytest

from hubrecords import db
from hubrecords.database.models import HubRecord
from hubrecords.errors import ForbiddenError, NotFoundError, ValidationError
from hubrecords.records.lifecycle import LifecycleError, today
from hubrecords.records.service import aggregate_stats


def jane(**extra):
    data = {'entity_name': 'Jane Doe', 'entity_phone': '555-0101'}
    data.update(extra)
    return data


def test_create_minimal_record(record_service, alice):
    record = record_service.create(alice['identity'], jane())

    assert record['id']
    assert record['user_id'] == alice['userId']
    assert record['status'] == 'Pending'
    assert record['product_category'] == 'Other'
    assert record['log_timeline'] == []
    assert record['total_value'] == 0
    assert record['created_at'] is not None


def test_create_ignores_client_owner(record_service, alice, bob):
    record = record_service.create(alice['identity'], jane(user_id=bob['userId'], id='forged'))
    assert record['user_id'] == alice['userId']
    assert record['id'] != 'forged'


def test_contact_fields_encrypted_at_rest(record_service, alice):
    record = record_service.create(alice['identity'], jane(entity_email='jane@example.com'))

    stored = db.session.get(HubRecord, record['id'])
    assert stored.entity_phone.startswith('enc:v1:')
    assert stored.entity_email.startswith('enc:v1:')
    assert '555-0101' not in stored.entity_phone

    fetched = record_service.get(alice['identity'], record['id'])
    assert fetched['entity_phone'] == '555-0101'
    assert fetched['entity_email'] == 'jane@example.com'


def test_empty_contact_field_not_encrypted(record_service, alice):
    record = record_service.create(alice['identity'], jane())
    assert db.session.get(HubRecord, record['id']).entity_email == ''


def test_legacy_plaintext_rows_are_readable(record_service, alice):
    legacy = HubRecord(user_id=alice['userId'], entity_name='Old', entity_phone='555-9999')
    db.session.add(legacy)
    db.session.commit()

    assert record_service.get(alice['identity'], legacy.id)['entity_phone'] == '555-9999'


def test_get_missing_record(record_service, alice):
    with pytest.raises(NotFoundError):
        record_service.get(alice['identity'], 'missing')


def test_owner_isolation(record_service, alice, bob, admin):
    record = record_service.create(alice['identity'], jane())

    for action in (
        lambda: record_service.get(bob['identity'], record['id']),
        lambda: record_service.update(bob['identity'], record['id'], {'product_name': 'x'}),
        lambda: record_service.delete(bob['identity'], record['id']),
    ):
        with pytest.raises(ForbiddenError):
            action()

    assert record_service.get(admin['identity'], record['id'])['id'] == record['id']
    assert record_service.get(alice['identity'], record['id'])['product_name'] == ''


def test_update_only_touches_sent_fields(record_service, alice):
    record = record_service.create(alice['identity'], jane(product_name='Laptop', serial_number='SN1'))

    updated = record_service.update(alice['identity'], record['id'], {'product_name': 'Tablet'})
    assert updated['product_name'] == 'Tablet'
    assert updated['serial_number'] == 'SN1'
    assert updated['entity_phone'] == '555-0101'


def test_update_null_clears_field(record_service, alice):
    record = record_service.create(alice['identity'], jane(serial_number='SN1'))
    updated = record_service.update(alice['identity'], record['id'], {'serial_number': None})
    assert updated['serial_number'] == ''


def test_update_cannot_change_owner(record_service, alice, bob):
    record = record_service.create(alice['identity'], jane())
    updated = record_service.update(alice['identity'], record['id'], {'user_id': bob['userId']})
    assert updated['user_id'] == alice['userId']


def test_totals_recomputed_on_update(record_service, alice):
    record = record_service.create(alice['identity'], jane(processing_fee=100, additional_cost=20))
    assert record['total_value'] == 120
    assert record['balance'] == 120

    updated = record_service.update(alice['identity'], record['id'], {'amount_paid': 50})
    assert updated['total_value'] == 120
    assert updated['balance'] == 70

    updated = record_service.update(alice['identity'], record['id'], {'additional_cost': 30})
    assert updated['total_value'] == 130
    assert updated['balance'] == 80


def test_explicit_totals_are_kept(record_service, alice):
    record = record_service.create(alice['identity'], jane(processing_fee=100))
    updated = record_service.update(alice['identity'], record['id'],
                                    {'amount_paid': 100, 'balance': 25})
    assert updated['balance'] == 25
    assert updated['total_value'] == 100


def test_status_change_appends_timeline(record_service, alice):
    record = record_service.create(alice['identity'], jane())
    updated = record_service.update(alice['identity'], record['id'], {'status': 'In-Transit'})

    assert updated['status'] == 'In-Transit'
    assert updated['log_timeline'] == [{
        'step': 'In-Transit',
        'date': today(),
        'note': 'Status changed from Pending to In-Transit',
        'status': 'In-Transit',
    }]

    updated = record_service.update(alice['identity'], record['id'],
                                    {'status': 'Damaged', 'status_note': 'box crushed'})
    assert [e['step'] for e in updated['log_timeline']] == ['In-Transit', 'Damaged']
    assert updated['log_timeline'][-1]['note'] == 'box crushed'


def test_same_status_does_not_append(record_service, alice):
    record = record_service.create(alice['identity'], jane())
    updated = record_service.update(alice['identity'], record['id'], {'status': 'Pending'})
    assert updated['log_timeline'] == []


def test_timeline_is_append_only(record_service, alice):
    first = {'step': 'Intake', 'date': '2026-01-01', 'note': '', 'status': 'Pending'}
    record = record_service.create(alice['identity'], jane(log_timeline=[first]))

    second = {'step': 'Checked', 'date': '2026-01-02', 'note': 'ok', 'status': 'Pending'}
    updated = record_service.update(alice['identity'], record['id'], {'log_timeline': [second]})
    assert updated['log_timeline'] == [first, second]

    updated = record_service.update(alice['identity'], record['id'], {'log_timeline': [first, second]})
    assert updated['log_timeline'] == [first, second]


def test_permissive_mode_allows_any_status(record_service, alice):
    record = record_service.create(alice['identity'], jane())
    updated = record_service.update(alice['identity'], record['id'], {'status': 'Sold'})
    assert updated['status'] == 'Sold'


def test_strict_mode_rejects_skips(record_service, alice, monkeypatch):
    monkeypatch.setattr(record_service, 'strict_transitions', True)
    record = record_service.create(alice['identity'], jane())

    with pytest.raises(LifecycleError):
        record_service.update(alice['identity'], record['id'], {'status': 'Sold'})
    assert record_service.get(alice['identity'], record['id'])['status'] == 'Pending'

    updated = record_service.update(alice['identity'], record['id'], {'status': 'In-Transit'})
    assert updated['status'] == 'In-Transit'


def test_invalid_update_leaves_record_unchanged(record_service, alice):
    record = record_service.create(alice['identity'], jane(product_name='Laptop'))
    with pytest.raises(ValidationError):
        record_service.update(alice['identity'], record['id'], {'product_name': 'Tablet', 'amount_paid': -5})
    assert record_service.get(alice['identity'], record['id'])['product_name'] == 'Laptop'


def test_delete(record_service, alice):
    record = record_service.create(alice['identity'], jane())
    assert record_service.delete(alice['identity'], record['id']) == {'success': True, 'id': record['id']}

    with pytest.raises(NotFoundError):
        record_service.get(alice['identity'], record['id'])
    with pytest.raises(NotFoundError):
        record_service.delete(alice['identity'], record['id'])


def test_list_records_newest_first(record_service, alice):
    older = record_service.create(alice['identity'], jane(entity_name='Older'))
    newer = record_service.create(alice['identity'], jane(entity_name='Newer'))
    db.session.get(HubRecord, older['id']).created_at = datetime.now(timezone.utc) - timedelta(days=1)
    db.session.commit()

    listed = record_service.list_records(alice['identity'])
    assert [r['id'] for r in listed] == [newer['id'], older['id']]


def test_list_records_narrowed_to_caller(record_service, alice, bob, admin):
    record_service.create(alice['identity'], jane())
    record_service.create(bob['identity'], jane(entity_name='Bob customer'))

    # a non-admin asking for another owner still only sees their own records
    listed = record_service.list_records(bob['identity'], owner_id=alice['userId'])
    assert [r['entity_name'] for r in listed] == ['Bob customer']

    assert len(record_service.list_records(admin['identity'])) == 2
    assert len(record_service.list_records(admin['identity'], owner_id=alice['userId'])) == 1


def test_list_records_by_status(record_service, alice):
    record = record_service.create(alice['identity'], jane())
    record_service.create(alice['identity'], jane(product_category='Internet'))

    pending = record_service.list_records(alice['identity'], status='Pending')
    assert [r['id'] for r in pending] == [record['id']]
    assert len(record_service.list_by_owner(alice['userId'])) == 2
    assert len(record_service.list_by_owner_and_status(alice['userId'], 'Active')) == 1

    with pytest.raises(ValidationError):
        record_service.list_records(alice['identity'], status='Lost')


def test_search_matches_decrypted_fields(record_service, alice):
    record_service.create(alice['identity'], jane(product_name='Laptop', serial_number='SN-77'))
    record_service.create(alice['identity'], jane(entity_name='John Roe', entity_phone='555-0202'))

    assert [r['entity_name'] for r in record_service.search(alice['identity'], 'laptop')] == ['Jane Doe']
    assert [r['entity_name'] for r in record_service.search(alice['identity'], '555-0202')] == ['John Roe']
    assert [r['serial_number'] for r in record_service.search(alice['identity'], 'sn-77')] == ['SN-77']
    assert record_service.search(alice['identity'], 'nothing-matches') == []
    assert len(record_service.search(alice['identity'], '')) == 2


def test_search_is_scoped(record_service, alice, bob):
    record_service.create(alice['identity'], jane(product_name='Laptop'))
    assert record_service.search(bob['identity'], 'laptop') == []
    assert record_service.search(bob['identity'], 'laptop', owner_id=alice['userId']) == []


def test_stats_for_owner(record_service, alice, bob):
    ident = alice['identity']
    a = record_service.create(ident, jane(processing_fee=100, amount_paid=40))
    b = record_service.create(ident, jane(processing_fee=50, amount_paid=50))
    record_service.create(ident, jane(product_category='Internet', processing_fee=10))
    c = record_service.create(ident, jane())
    record_service.update(ident, b['id'], {'status': 'Sold'})
    record_service.update(ident, c['id'], {'status': 'Damaged'})
    record_service.create(bob['identity'], jane(amount_paid=999))

    stats = record_service.stats_for_owner(ident, alice['userId'])
    assert stats == {
        'total': 4,
        'completed': 1,
        'pending': 1,
        'inProgress': 1,
        'totalRevenue': 90,
        'outstandingBalance': 70,
    }
    assert a['balance'] == 60


def test_stats_for_other_owner_narrowed(record_service, alice, bob):
    record_service.create(alice['identity'], jane())
    assert record_service.stats_for_owner(bob['identity'], alice['userId'])['total'] == 0


def test_aggregate_stats_empty():
    assert aggregate_stats([]) == {
        'total': 0, 'completed': 0, 'pending': 0, 'inProgress': 0,
        'totalRevenue': 0.0, 'outstandingBalance': 0.0,
    }


def test_global_stats_requires_admin(record_service, alice, bob, admin):
    record_service.create(alice['identity'], jane(amount_paid=10))
    record_service.create(bob['identity'], jane(product_category='Internet', amount_paid=5))

    with pytest.raises(ForbiddenError):
        record_service.global_stats(alice['identity'])

    stats = record_service.global_stats(admin['identity'])
    assert stats == {
        'totalUsers': 3,
        'totalRecords': 2,
        'pending': 1,
        'completed': 0,
        'inProgress': 1,
        'totalRevenue': 15,
    }


def test_list_all_records_paginates(record_service, alice, bob, admin):
    for i in range(3):
        record_service.create(alice['identity'], jane(entity_name=f'A{i}'))
    record_service.create(bob['identity'], jane(entity_name='B0'))

    page = record_service.list_all_records(admin['identity'], limit=2, offset=0)
    assert page['total'] == 4
    assert len(page['records']) == 2

    rest = record_service.list_all_records(admin['identity'], limit=2, offset=2)
    ids = {r['id'] for r in page['records']} | {r['id'] for r in rest['records']}
    assert len(ids) == 4

    with pytest.raises(ForbiddenError):
        record_service.list_all_records(alice['identity'])


@pytest.mark.parametrize("limit,offset", [(0, 0), (-1, 0), (10, -1), ('10', 0)])
def test_list_all_records_bad_paging(record_service, admin, limit, offset):
    with pytest.raises(ValidationError):
        record_service.list_all_records(admin['identity'], limit=limit, offset=offset)


def test_record_events_are_audited(record_service, alice):
    audit = record_service.audit_logger
    record = record_service.create(alice['identity'], jane())
    record_service.update(alice['identity'], record['id'], {'status': 'In-Transit'})
    record_service.delete(alice['identity'], record['id'])

    mine = [e for e in audit.read_events() if e['data'].get('record_id') == record['id']]
    assert [e['event_type'] for e in mine] == [
        'record_created', 'record_updated', 'record_status_changed', 'record_deleted',
    ]
    # contact data never reaches the audit trail
    assert '555-0101' not in str(mine)


def test_stats_exclude_deleted_records(record_service, alice):
    keep = record_service.create(alice['identity'], jane(amount_paid=10))
    gone = record_service.create(alice['identity'], jane(amount_paid=30))
    record_service.delete(alice['identity'], gone['id'])

    stats = record_service.stats_for_owner(alice['identity'])
    assert stats['total'] == 1
    assert stats['totalRevenue'] == 10
    assert record_service.get(alice['identity'], keep['id'])['amount_paid'] == 10


def test_free_text_round_trips(record_service, alice):
    record = record_service.create(alice['identity'], jane(specifications='onsite=yes; online = true',
                                                           entity_phone='5' * 255))
    fetched = record_service.get(alice['identity'], record['id'])
    assert fetched['specifications'] == 'onsite=yes; online = true'
    assert fetched['entity_phone'] == '5' * 255


def test_overlong_phone_rejected(record_service, alice):
    with pytest.raises(ValidationError) as exc:
        record_service.create(alice['identity'], jane(entity_phone='5' * 300))
    assert 'entity_phone' in exc.value.errors


def test_null_status_resets_to_category_default(record_service, alice):
    session = record_service.create(alice['identity'], jane(product_category='Internet'))
    assert session['status'] == 'Active'

    updated = record_service.update(alice['identity'], session['id'], {'status': None})
    assert updated['status'] == 'Active'
    assert updated['log_timeline'] == []

    goods = record_service.create(alice['identity'], jane())
    record_service.update(alice['identity'], goods['id'], {'status': 'In-Transit'})
    updated = record_service.update(alice['identity'], goods['id'], {'status': None})
    assert updated['status'] == 'Pending'


def test_null_status_follows_category_in_same_update(record_service, alice):
    record = record_service.create(alice['identity'], jane())
    updated = record_service.update(alice['identity'], record['id'],
                                    {'product_category': 'Internet', 'status': None})
    assert updated['status'] == 'Active'


def test_search_treats_wildcards_literally(record_service, alice):
    record_service.create(alice['identity'], jane(product_name='100% cotton'))
    record_service.create(alice['identity'], jane(product_name='1000 units'))

    found = record_service.search(alice['identity'], '100%')
    assert [r['product_name'] for r in found] == ['100% cotton']
    assert record_service.search(alice['identity'], '_') == []


def test_search_matches_plain_and_encrypted_fields_together(record_service, alice):
    by_name = record_service.create(alice['identity'], jane(entity_name='Alpha 42'))
    by_phone = record_service.create(alice['identity'], jane(entity_name='Beta', entity_phone='555-42'))

    found = {r['id'] for r in record_service.search(alice['identity'], '42')}
    assert {by_name['id'], by_phone['id']} <= found

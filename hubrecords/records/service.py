# hubrecords/records/service.py
"""Hub record operations: CRUD behind the authorization policy, the
read-path view mapping, and the query/aggregation layer.

Contact fields are encrypted immediately before they are written and
decrypted by ``to_view``, which every read path goes through. Nothing
outside this module sees a stored (encrypted) value.
"""

import logging

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from hubrecords import db
from hubrecords.authentication.rbac import Operation
from hubrecords.database.models import HubRecord, User
from hubrecords.encryption.field_encryption import ENCRYPTED_FIELDS
from hubrecords.errors import InternalError, NotFoundError, ValidationError
from hubrecords.records import financials, lifecycle
from hubrecords.records.lifecycle import RecordStatus
from hubrecords.records.validator import Patch, RecordValidator, WRITABLE_FIELDS

logger = logging.getLogger(__name__)

COMPLETED_STATUSES = {RecordStatus.VERIFIED.value, RecordStatus.SOLD.value, RecordStatus.COMPLETED.value}
PENDING_STATUSES = {RecordStatus.PENDING.value}
IN_PROGRESS_STATUSES = {RecordStatus.IN_TRANSIT.value, RecordStatus.ACTIVE.value, RecordStatus.RECEIVED.value}

SEARCH_FIELDS = ('entity_name', 'entity_phone', 'product_name', 'serial_number', 'batch_sku', 'status', 'id')

DEFAULT_PAGE_SIZE = 100


def aggregate_stats(rows):
    """Fold ``(status, amount_paid, balance)`` rows into dashboard counters."""
    stats = {
        'total': 0,
        'completed': 0,
        'pending': 0,
        'inProgress': 0,
        'totalRevenue': 0.0,
        'outstandingBalance': 0.0,
    }
    for status, amount_paid, balance in rows:
        stats['total'] += 1
        if status in COMPLETED_STATUSES:
            stats['completed'] += 1
        elif status in PENDING_STATUSES:
            stats['pending'] += 1
        elif status in IN_PROGRESS_STATUSES:
            stats['inProgress'] += 1
        stats['totalRevenue'] += amount_paid or 0
        stats['outstandingBalance'] += balance or 0
    return stats


class RecordService:
    def __init__(self, codec, policy, validator=None, audit_logger=None, strict_transitions=False,
                 max_page_size=500):
        self.codec = codec
        self.policy = policy
        self.validator = validator or RecordValidator()
        self.audit_logger = audit_logger
        self.strict_transitions = strict_transitions
        self.max_page_size = max_page_size

    # -- persistence helpers -------------------------------------------------

    def _audit(self, event_type, record_id, user_id, **data):
        if self.audit_logger is not None:
            self.audit_logger.log_record_event(event_type, record_id, user_id=user_id, **data)

    @staticmethod
    def _commit():
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("Record store write failed")
            raise InternalError("Failed to save record") from e

    def _load(self, record_id):
        record = db.session.get(HubRecord, str(record_id)) if record_id else None
        if record is None:
            raise NotFoundError("Record not found")
        return record

    def _encode(self, fields):
        # only non-empty sensitive values present in this write are encrypted
        return self.codec.encode_fields(fields, ENCRYPTED_FIELDS)

    def to_view(self, record):
        """Plain dict of a stored record with contact fields decrypted."""
        view = {field: getattr(record, field) for field in WRITABLE_FIELDS}
        view['log_timeline'] = [dict(entry) for entry in record.log_timeline or []]
        view['verification_confirmation'] = dict(record.verification_confirmation or {})
        view['id'] = record.id
        view['user_id'] = record.user_id
        view['created_at'] = record.created_at.isoformat() if record.created_at else None
        view['updated_at'] = record.updated_at.isoformat() if record.updated_at else None
        return self.codec.decode_fields(view, ENCRYPTED_FIELDS)

    # -- record operations -----------------------------------------------------

    def create(self, identity, data):
        self.policy.authorize(identity, Operation.CREATE_RECORD)
        fields = self.validator.validate_create(data)

        record = HubRecord(user_id=identity.user_id, **self._encode(fields))
        db.session.add(record)
        self._commit()

        logger.info("Record %s created by %s", record.id, identity.user_id)
        self._audit('record_created', record.id, identity.user_id, status=record.status)
        return self.to_view(record)

    def get(self, identity, record_id):
        record = self._load(record_id)
        self.policy.authorize(identity, Operation.READ_RECORD, record.user_id)
        return self.to_view(record)

    def update(self, identity, record_id, data):
        record = self._load(record_id)
        self.policy.authorize(identity, Operation.UPDATE_RECORD, record.user_id)
        patch = self.validator.validate_update(record_id, data)

        current = {field: getattr(record, field) for field in financials.INPUT_FIELDS}
        changes = dict(financials.apply_recalculation(patch.changes, current))
        if 'status' in patch.cleared:
            changes['status'] = lifecycle.initial_status(changes.get('product_category', record.product_category))

        timeline = list(record.log_timeline or [])
        if 'log_timeline' in changes:
            timeline = lifecycle.merge_timeline(timeline, changes.pop('log_timeline'))

        old_status = record.status
        new_status = changes.get('status', old_status)
        status_changed = new_status != old_status
        if status_changed:
            lifecycle.check_transition(old_status, new_status, strict=self.strict_transitions)
            timeline.append(lifecycle.status_change_entry(old_status, new_status, note=patch.status_note))

        Patch(self._encode(changes)).apply(record)
        record.log_timeline = timeline
        self._commit()

        self._audit('record_updated', record.id, identity.user_id, fields=patch.fields())
        if status_changed:
            self._audit('record_status_changed', record.id, identity.user_id,
                        old_status=old_status, new_status=new_status)
        return self.to_view(record)

    def delete(self, identity, record_id):
        record = self._load(record_id)
        self.policy.authorize(identity, Operation.DELETE_RECORD, record.user_id)
        owner_id = record.user_id
        db.session.delete(record)
        self._commit()

        logger.info("Record %s deleted by %s", record_id, identity.user_id)
        self._audit('record_deleted', record_id, identity.user_id, owner_id=owner_id)
        return {'success': True, 'id': record_id}

    # -- queries -------------------------------------------------------------

    def _scoped_query(self, owner_id=None, status=None):
        query = db.session.query(HubRecord)
        if owner_id is not None:
            query = query.filter(HubRecord.user_id == owner_id)
        if status is not None:
            if status not in lifecycle.VALID_STATUSES:
                raise ValidationError(f"Invalid status '{status}'", errors={'status': 'invalid'})
            query = query.filter(HubRecord.status == status)
        return query.order_by(HubRecord.created_at.desc())

    def list_by_owner(self, owner_id):
        return [self.to_view(r) for r in self._scoped_query(owner_id).all()]

    def list_by_owner_and_status(self, owner_id, status):
        return [self.to_view(r) for r in self._scoped_query(owner_id, status).all()]

    def list_records(self, identity, owner_id=None, status=None):
        self.policy.authorize(identity, Operation.LIST_RECORDS)
        scope = self.policy.resolve_owner_scope(identity, owner_id)
        return [self.to_view(r) for r in self._scoped_query(scope, status or None).all()]

    def search(self, identity, text, owner_id=None):
        """Case-insensitive substring search over record fields.

        Plaintext columns are matched in SQL. Encrypted columns hold
        randomized ciphertext, so for the rows SQL did not match only those
        columns are loaded and decrypted.
        """
        self.policy.authorize(identity, Operation.SEARCH_RECORDS)
        scope = self.policy.resolve_owner_scope(identity, owner_id)
        needle = (text or '').strip().lower()
        query = self._scoped_query(scope)
        if not needle:
            return [self.to_view(r) for r in query.all()]

        pattern = '%' + needle.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_') + '%'
        plain_match = or_(*[getattr(HubRecord, field).ilike(pattern, escape='\\')
                            for field in SEARCH_FIELDS if field not in ENCRYPTED_FIELDS])
        matched = {record_id for (record_id,) in query.filter(plain_match).with_entities(HubRecord.id)}

        encrypted = [field for field in SEARCH_FIELDS if field in ENCRYPTED_FIELDS]
        columns = [getattr(HubRecord, field) for field in encrypted]
        for record_id, *values in query.filter(~plain_match).with_entities(HubRecord.id, *columns):
            if any(needle in (self.codec.decode(value) or '').lower() for value in values):
                matched.add(record_id)

        if not matched:
            return []
        return [self.to_view(r) for r in query.filter(HubRecord.id.in_(matched)).all()]

    def stats_for_owner(self, identity, owner_id=None):
        self.policy.authorize(identity, Operation.VIEW_STATS)
        scope = self.policy.resolve_owner_scope(identity, owner_id) or identity.user_id
        rows = (
            db.session.query(HubRecord.status, HubRecord.amount_paid, HubRecord.balance)
            .filter(HubRecord.user_id == scope)
            .all()
        )
        return aggregate_stats(rows)

    def global_stats(self, identity):
        self.policy.authorize(identity, Operation.VIEW_GLOBAL_STATS)
        rows = db.session.query(HubRecord.status, HubRecord.amount_paid, HubRecord.balance).all()
        stats = aggregate_stats(rows)
        return {
            'totalUsers': db.session.query(func.count(User.id)).scalar() or 0,
            'totalRecords': stats['total'],
            'pending': stats['pending'],
            'completed': stats['completed'],
            'inProgress': stats['inProgress'],
            'totalRevenue': stats['totalRevenue'],
        }

    def list_all_records(self, identity, status=None, limit=DEFAULT_PAGE_SIZE, offset=0):
        self.policy.authorize(identity, Operation.LIST_ALL_RECORDS)
        if not isinstance(limit, int) or limit < 1:
            raise ValidationError("limit must be a positive integer", errors={'limit': 'invalid'})
        if not isinstance(offset, int) or offset < 0:
            raise ValidationError("offset must be a non-negative integer", errors={'offset': 'invalid'})
        limit = min(limit, self.max_page_size)

        query = self._scoped_query(status=status or None)
        total = query.count()
        records = query.offset(offset).limit(limit).all()
        return {'records': [self.to_view(r) for r in records], 'total': total}

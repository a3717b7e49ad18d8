# hubrecords/database/models.py

import uuid
from datetime import datetime, timezone

from hubrecords import db

# Database schema for users and hub records


def _new_id():
    return uuid.uuid4().hex


def _utcnow():
    return datetime.now(timezone.utc)


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    email = db.Column(db.String(254), unique=True, nullable=False, index=True)  # stored lower-cased
    password_hash = db.Column(db.String(200), nullable=False)  # Argon2id hash
    name = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(20), nullable=False, default='user')
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    user_metadata = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    records = db.relationship('HubRecord', backref='owner', lazy=True)

    def __repr__(self):
        return f'<User {self.id} {self.role}>'


class HubRecord(db.Model):
    __tablename__ = 'hub_records'
    __table_args__ = (
        db.Index('ix_hub_records_user_status', 'user_id', 'status'),
        db.Index('ix_hub_records_status_created', 'status', 'created_at'),
    )

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    user_id = db.Column(db.String(32), db.ForeignKey('users.id'), nullable=False, index=True)

    hub_location = db.Column(db.String(255), nullable=False, default='')
    recorder_name = db.Column(db.String(255), nullable=False, default='')
    entry_date = db.Column(db.String(255), nullable=False, default='')
    entity_name = db.Column(db.String(255), nullable=False, index=True)
    entity_phone = db.Column(db.Text, nullable=False)  # encrypted at rest
    entity_email = db.Column(db.Text, nullable=False, default='')  # encrypted at rest
    entity_address = db.Column(db.Text, nullable=False, default='')
    product_name = db.Column(db.String(255), nullable=False, default='')
    product_category = db.Column(db.String(32), nullable=False, default='Other')
    batch_sku = db.Column(db.String(255), nullable=False, default='')
    serial_number = db.Column(db.String(255), nullable=False, default='', index=True)
    specifications = db.Column(db.Text, nullable=False, default='')
    accessories_notes = db.Column(db.Text, nullable=False, default='')
    record_description = db.Column(db.Text, nullable=False, default='')
    product_photo = db.Column(db.Text, nullable=True)

    verification_date = db.Column(db.String(255), nullable=False, default='')
    verification_staff = db.Column(db.String(255), nullable=False, default='')
    quality_check = db.Column(db.Text, nullable=False, default='')
    materials_notes = db.Column(db.Text, nullable=False, default='')
    action_taken = db.Column(db.Text, nullable=False, default='')
    verification_confirmation = db.Column(db.JSON, nullable=False,
                                          default=lambda: {'verified': False, 'verifier_name': ''})

    processing_fee = db.Column(db.Float, nullable=False, default=0.0)
    additional_cost = db.Column(db.Float, nullable=False, default=0.0)
    total_value = db.Column(db.Float, nullable=False, default=0.0)
    amount_paid = db.Column(db.Float, nullable=False, default=0.0)
    balance = db.Column(db.Float, nullable=False, default=0.0)
    transaction_completed = db.Column(db.Boolean, nullable=False, default=False)
    is_dispatched = db.Column(db.Boolean, nullable=False, default=False)

    status = db.Column(db.String(20), nullable=False, default='Pending', index=True)
    log_timeline = db.Column(db.JSON, nullable=False, default=list)  # append-only

    created_at = db.Column(db.DateTime, default=_utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f'<HubRecord {self.id} {self.status} by User {self.user_id}>'

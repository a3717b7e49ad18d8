# hubrecords/audit/audit_logger.py

import os
import json
import hashlib
import base64
import logging
import threading
from datetime import datetime, timezone
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.exceptions import InvalidSignature

logger = logging.getLogger(__name__)

# Append-only audit trail of account and record events.
# Each JSON line is hash-chained to the previous one and signed with Ed25519.
# Callers pass ids and field names only; contact data never goes in here.


def _canonical(entry):
    # hash and signature both cover the entry without its seal fields
    body = {k: v for k, v in entry.items() if k not in ('hash', 'signature')}
    return json.dumps(body, sort_keys=True).encode()


class AuditLogger:
    def __init__(self, log_dir='logs', signing_key=None):
        self.log_dir = log_dir
        self.log_file = os.path.join(log_dir, 'audit.log')
        self.previous_hash = None
        self._lock = threading.Lock()

        os.makedirs(log_dir, exist_ok=True)

        self.signing_key = self._load_signing_key(signing_key)
        self.previous_hash = self._last_hash()

    @staticmethod
    def _load_signing_key(signing_key):
        # hex-encoded 32-byte seed keeps signatures verifiable across restarts
        if isinstance(signing_key, Ed25519PrivateKey):
            return signing_key
        if signing_key:
            return Ed25519PrivateKey.from_private_bytes(bytes.fromhex(signing_key))
        return Ed25519PrivateKey.generate()

    def _entries(self):
        if not os.path.exists(self.log_file):
            return
        with open(self.log_file, 'r') as f:
            for line in f:
                if line.strip():
                    yield json.loads(line)

    def _last_hash(self):
        last = None
        try:
            for entry in self._entries():
                last = entry.get('hash')
        except json.JSONDecodeError:
            logger.warning("Audit log %s has an unreadable entry; starting a new chain", self.log_file)
            return None
        return last

    def _seal(self, entry):
        payload = _canonical(entry)
        entry['hash'] = hashlib.sha256(payload).hexdigest()
        entry['signature'] = base64.b64encode(self.signing_key.sign(payload)).decode()
        return entry

    def log_security_event(self, event_type, data, user_id=None):
        with self._lock:
            try:
                entry = self._seal({
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "event_type": event_type,
                    "data": data,
                    "user_id": user_id,
                    "previous_hash": self.previous_hash,
                })
                with open(self.log_file, 'a') as f:
                    f.write(json.dumps(entry) + "\n")
                self.previous_hash = entry['hash']
            except (OSError, TypeError, ValueError) as e:
                # the trail must never fail the request that produced the event
                logger.error("Audit log error: %s", e)

    def log_record_event(self, event_type, record_id, user_id=None, **data):
        self.log_security_event(event_type, dict(data, record_id=record_id), user_id=user_id)

    def read_events(self, event_type=None):
        return [e for e in self._entries() if event_type is None or e.get('event_type') == event_type]

    def verify_log_integrity(self):
        """Walk the chain and check every hash link and signature."""
        public_key = self.signing_key.public_key()
        previous_hash = None
        try:
            for entry in self._entries():
                if entry.get('previous_hash') != previous_hash:
                    return False
                payload = _canonical(entry)
                if hashlib.sha256(payload).hexdigest() != entry['hash']:
                    return False
                public_key.verify(base64.b64decode(entry['signature']), payload)
                previous_hash = entry['hash']
        except (InvalidSignature, KeyError, ValueError):
            return False
        return True

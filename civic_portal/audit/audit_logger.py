# civic_portal/audit/audit_logger.py

import base64
import hashlib
import json
import logging
import os
import threading
from datetime import datetime, timezone

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

logger = logging.getLogger(__name__)

# Tamper-evident audit trail for identity checks, account changes, votes and
# moderation: JSON lines with SHA-256 hash chaining and Ed25519 signatures.

CHAIN_FIELDS = ('hash', 'signature')


def hash_voter_id(voter_id):
    """Audit entries reference voters by digest, never by registry id."""
    return hashlib.sha256(str(voter_id).encode()).hexdigest()[:16]


def load_signing_key(path):
    """Load the PEM signing key at `path`, creating it on first use."""
    if os.path.exists(path):
        with open(path, 'rb') as f:
            key = serialization.load_pem_private_key(f.read(), password=None)
        if not isinstance(key, Ed25519PrivateKey):
            raise ValueError(f"{path} does not hold an Ed25519 key")
        return key

    key = Ed25519PrivateKey.generate()
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, 'wb') as f:
        f.write(pem)
    logger.info(f"Generated audit signing key at {path}")
    return key


def _canonical(entry):
    body = {k: v for k, v in entry.items() if k not in CHAIN_FIELDS}
    return json.dumps(body, sort_keys=True).encode()


class AuditLogger:
    def __init__(self, log_dir='logs', signing_key=None):
        self.log_dir = log_dir
        self.log_file = os.path.join(log_dir, 'audit.log')
        self._lock = threading.Lock()
        os.makedirs(log_dir, exist_ok=True)

        # Without a persisted key, only entries written by this process verify
        self.signing_key = signing_key or Ed25519PrivateKey.generate()
        self.previous_hash = self._last_hash()

    @classmethod
    def from_config(cls, config):
        log_dir = config.get('AUDIT_LOG_DIR', 'logs')
        key_path = config.get('AUDIT_SIGNING_KEY_PATH') or os.path.join(log_dir, 'audit_signing_key.pem')
        return cls(log_dir=log_dir, signing_key=load_signing_key(key_path))

    def _last_hash(self):
        lines = list(self._iter_lines())
        if not lines:
            return None
        try:
            return json.loads(lines[-1]).get('hash')
        except json.JSONDecodeError:
            logger.warning(f"Last line of {self.log_file} is not JSON; starting a new chain")
            return None

    def _iter_lines(self):
        if not os.path.exists(self.log_file):
            return
        with open(self.log_file, 'r') as f:
            for line in f:
                if line.strip():
                    yield line

    def log_event(self, event_type, data, account_id=None):
        """Append an event. Audit failures are logged, never raised to the caller."""
        with self._lock:
            entry = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "event_type": event_type,
                "data": data,
                "account_id": account_id,
                "previous_hash": self.previous_hash,
            }
            try:
                payload = _canonical(entry)
                entry['hash'] = hashlib.sha256(payload).hexdigest()
                entry['signature'] = base64.b64encode(self.signing_key.sign(payload)).decode()
                with open(self.log_file, 'a') as f:
                    f.write(json.dumps(entry) + "\n")
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Audit log error for {event_type}: {e}")
                return
            self.previous_hash = entry['hash']

    def read_entries(self, newest_first=True):
        entries = [json.loads(line) for line in self._iter_lines()]
        return entries[::-1] if newest_first else entries

    def verify_log_integrity(self):
        """Check every entry's chain link, digest and signature."""
        public_key = self.signing_key.public_key()
        expected_previous = None
        try:
            for line in self._iter_lines():
                entry = json.loads(line)
                payload = _canonical(entry)
                if entry.get('previous_hash') != expected_previous:
                    return False
                if hashlib.sha256(payload).hexdigest() != entry.get('hash'):
                    return False
                public_key.verify(base64.b64decode(entry['signature']), payload)
                expected_previous = entry['hash']
        except (InvalidSignature, KeyError, ValueError) as e:
            logger.warning(f"Audit log integrity check failed: {e!r}")
            return False
        return True

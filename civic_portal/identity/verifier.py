# civic_portal/identity/verifier.py
"""Identity verification against the voter registry.

A claimed identity is a voter id, a last name and one or more secondary
factors. The registry row is found by voter id plus a case-insensitive exact
last name; a factor then matches if it equals the date of birth exactly or is
a case-insensitive substring of the street address. The substring rule lets
voters type a partial address and is intentionally loose.

Every denial raises the same ``IdentityNotVerified`` so callers cannot tell
which field was wrong.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from civic_portal.audit.audit_logger import hash_voter_id
from civic_portal.errors import IdentityNotVerified, InvalidInput, TooManyAttempts
from civic_portal.security.input_validator import InputValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedIdentity:
    voter_id: str
    district: str
    full_name: str


def factor_matches(entry, factor: Optional[str]) -> bool:
    if factor is None:
        return False
    factor = str(factor).strip()
    if not factor:
        # An empty substring would match every address
        return False
    if factor == entry.date_of_birth:
        return True
    return factor.lower() in (entry.street_address or "").lower()


def surname_candidates(full_name):
    """Jane van der Berg -> Jane van der Berg, van der Berg, der Berg, Berg."""
    parts = (full_name or "").split()
    return [" ".join(parts[i:]) for i in range(len(parts))]


class IdentityVerifier:
    def __init__(self, registry, throttle=None, audit_logger=None, validator=None):
        self.registry = registry
        self.validator = validator or InputValidator()
        self.throttle = throttle
        self.audit_logger = audit_logger

    def _throttle_keys(self, voter_id, client):
        keys = [f"voter:{(voter_id or '').strip()}"]
        if client:
            keys.append(f"client:{client}")
        return keys

    @staticmethod
    def _require_text(value, field):
        if value is not None and not isinstance(value, str):
            raise InvalidInput(f"{field} must be text")

    def _check_throttle(self, keys):
        if self.throttle is None:
            return
        retry_after = max(self.throttle.retry_after(key) for key in keys)
        if retry_after:
            raise TooManyAttempts(retry_after=retry_after)

    def _audit(self, event_type, voter_id, **data):
        if self.audit_logger is not None:
            self.audit_logger.log_event(event_type, dict(voter=hash_voter_id(voter_id), **data))

    def verify(self, voter_id, last_name, *secondary_factors, client=None) -> VerifiedIdentity:
        """Return the verified identity or raise ``IdentityNotVerified``.

        Any one of ``secondary_factors`` matching is enough. ``client`` is the
        caller's address, used only for throttling.
        """
        self._require_text(voter_id, "voterId")
        self._require_text(last_name, "lastName")
        return self._verify(voter_id, [last_name], secondary_factors, client)

    def verify_full_name(self, voter_id, full_name, *secondary_factors, client=None) -> VerifiedIdentity:
        """Like ``verify`` but takes the name as typed on signup or reset forms."""
        self._require_text(voter_id, "voterId")
        self._require_text(full_name, "fullName")
        return self._verify(voter_id, surname_candidates(full_name), secondary_factors, client)

    def _lookup(self, voter_id, last_names):
        for last_name in last_names:
            entry = self.registry.find_by_voter_id_and_last_name(voter_id, last_name)
            if entry is not None:
                return entry
        return None

    def _verify(self, voter_id, last_names, secondary_factors, client):
        keys = self._throttle_keys(voter_id, client)
        self._check_throttle(keys)

        entry = None
        if self.validator.validate_voter_id(voter_id):
            entry = self._lookup(voter_id, last_names)
        if entry is not None and any(factor_matches(entry, f) for f in secondary_factors):
            if self.throttle is not None:
                self.throttle.reset(keys[0])
            self._audit('identity_verified', voter_id, district=entry.district)
            return VerifiedIdentity(
                voter_id=entry.voter_id,
                district=entry.district,
                full_name=entry.full_name,
            )

        reason = 'not_found' if entry is None else 'factor_mismatch'
        logger.info(f"Identity verification denied ({reason})")
        self._audit('identity_denied', voter_id, reason=reason, client=client)
        if self.throttle is not None:
            for key in keys:
                self.throttle.record_failed_attempt(key)
        raise IdentityNotVerified()

import pytest

from civic_portal.errors import IdentityNotVerified, InvalidInput, TooManyAttempts
from civic_portal.identity.registry import RegistryStore
from civic_portal.identity.verifier import IdentityVerifier, surname_candidates
from civic_portal.security.intrusion_detection import VerificationThrottle


@pytest.fixture
def verifier(app):
    return IdentityVerifier(RegistryStore())


def test_dob_match_returns_district(verifier):
    identity = verifier.verify("123456", "Doe", "1980-01-01")
    assert identity.district == "4"
    assert identity.voter_id == "123456"
    assert identity.full_name == "Jane Doe"


def test_address_substring_match(verifier):
    identity = verifier.verify("123456", "Doe", "wrongdob", "Main")
    assert identity.district == "4"


def test_address_not_in_registry_is_denied(verifier):
    with pytest.raises(IdentityNotVerified):
        verifier.verify("123456", "Doe", "wrongdob", "Elm")


def test_last_name_is_case_insensitive(verifier):
    assert verifier.verify("123456", "dOE", "1980-01-01").district == "4"


def test_address_match_is_case_insensitive(verifier):
    assert verifier.verify("234567", "Smith", "elm STREET").district == "2"


def test_last_name_must_match_exactly(verifier):
    with pytest.raises(IdentityNotVerified):
        verifier.verify("123456", "Do", "1980-01-01")


def test_unknown_voter_is_denied(verifier):
    with pytest.raises(IdentityNotVerified):
        verifier.verify("999999", "Doe", "1980-01-01")


def test_dob_must_match_exactly(verifier):
    with pytest.raises(IdentityNotVerified):
        verifier.verify("123456", "Doe", "1980-1-1")


@pytest.mark.parametrize("factor", ["", "   ", None])
def test_blank_factor_never_matches(verifier, factor):
    with pytest.raises(IdentityNotVerified):
        verifier.verify("123456", "Doe", factor)


def test_no_factor_is_denied(verifier):
    with pytest.raises(IdentityNotVerified):
        verifier.verify("123456", "Doe")


def test_denial_message_does_not_reveal_field(verifier):
    with pytest.raises(IdentityNotVerified) as unknown:
        verifier.verify("999999", "Doe", "1980-01-01")
    with pytest.raises(IdentityNotVerified) as mismatch:
        verifier.verify("123456", "Doe", "1999-12-31")
    assert unknown.value.message == mismatch.value.message


def test_full_name_with_multi_word_surname(verifier):
    identity = verifier.verify_full_name("345678", "Anna van der Berg", "5 Oak")
    assert identity.district == "1"


def test_surname_candidates():
    assert surname_candidates("Jane Doe") == ["Jane Doe", "Doe"]
    assert surname_candidates("  ") == []


def test_throttle_locks_out_after_repeated_failures(app):
    throttle = VerificationThrottle(max_attempts=3, window_minutes=15, lockout_minutes=5)
    verifier = IdentityVerifier(RegistryStore(), throttle=throttle)
    for _ in range(3):
        with pytest.raises(IdentityNotVerified):
            verifier.verify("123456", "Doe", "nope-nope")

    # Even the right answer is refused during lockout
    with pytest.raises(TooManyAttempts) as exc:
        verifier.verify("123456", "Doe", "1980-01-01")
    assert exc.value.retry_after > 0


def test_success_clears_voter_failures(app):
    throttle = VerificationThrottle(max_attempts=3)
    verifier = IdentityVerifier(RegistryStore(), throttle=throttle)
    for _ in range(2):
        with pytest.raises(IdentityNotVerified):
            verifier.verify("123456", "Doe", "nope-nope")
    verifier.verify("123456", "Doe", "1980-01-01")
    assert "voter:123456" not in throttle.failed_attempts


def test_verification_is_audited(services, app):
    services.verifier.verify("123456", "Doe", "1980-01-01", client="10.0.0.1")
    events = [e["event_type"] for e in services.audit_logger.read_entries()]
    assert "identity_verified" in events
    entry = services.audit_logger.read_entries()[0]
    assert "123456" not in str(entry["data"])


@pytest.mark.parametrize("voter_id,last_name", [
    (123456, "Doe"),
    ("123456", 42),
    (["123456"], "Doe"),
])
def test_non_text_identity_fields_rejected(verifier, voter_id, last_name):
    with pytest.raises(InvalidInput):
        verifier.verify(voter_id, last_name, "1980-01-01")


def test_numeric_full_name_rejected(verifier):
    with pytest.raises(InvalidInput):
        verifier.verify_full_name("123456", 1980, "1980-01-01")


def test_malformed_voter_id_is_not_found(app):
    throttle = VerificationThrottle(max_attempts=3)
    verifier = IdentityVerifier(RegistryStore(), throttle=throttle)
    with pytest.raises(IdentityNotVerified):
        verifier.verify("123456' OR 1=1", "Doe", "1980-01-01")
    assert len(throttle.failed_attempts["voter:123456' OR 1=1"]) == 1

import pytest

from civic_portal.errors import InvalidInput
from civic_portal.security.input_validator import InputValidator


@pytest.fixture
def validator():
    return InputValidator()


def test_sanitize_string_basic(validator):
    assert validator.sanitize_string("Hello World") == "Hello World"
    assert validator.sanitize_string(" extra spaces  ") == "extra spaces"

    # All markup is stripped
    assert validator.sanitize_string("<p>text</p>") == "text"
    assert validator.sanitize_string('<b>bold</b>') == "bold"

    assert len(validator.sanitize_string("a" * 300)) == 255


def test_sanitize_string_removes_scripts(validator):
    assert validator.sanitize_string('<script>alert("xss")</script>') == ""
    assert validator.sanitize_string('Nice <script>alert(1)</script>poll') == "Nice poll"
    assert "onclick" not in validator.sanitize_string('<a onclick=alert(1)>x</a>')


def test_sanitize_string_invalid_input(validator):
    with pytest.raises(InvalidInput):
        validator.sanitize_string(123)
    with pytest.raises(InvalidInput):
        validator.sanitize_string(None)


def test_require_text(validator):
    assert validator.require_text("  Library hours ", "question") == "Library hours"
    with pytest.raises(InvalidInput, match="question is required"):
        validator.require_text(None, "question")
    with pytest.raises(InvalidInput, match="must not be empty"):
        validator.require_text("<b></b>", "question")


def test_optional_text(validator):
    assert validator.optional_text(None) == ''
    assert validator.optional_text("<i>Details</i>") == "Details"


def test_validate_username(validator):
    assert validator.validate_username("jane.doe")
    assert validator.validate_username("civic_99")
    assert not validator.validate_username("ab")
    assert not validator.validate_username("has space")
    assert not validator.validate_username("")
    assert not validator.validate_username(None)


def test_validate_voter_id(validator):
    assert validator.validate_voter_id("123456")
    assert validator.validate_voter_id("AB-1234")
    assert not validator.validate_voter_id("12 34")
    assert not validator.validate_voter_id("")
    assert not validator.validate_voter_id(None)
    assert not validator.validate_voter_id(123456)


def test_parse_bool(validator):
    assert validator.parse_bool(True, "isAnonymous") is True
    assert validator.parse_bool(None, "isAnonymous") is False
    with pytest.raises(InvalidInput):
        validator.parse_bool("true", "isAnonymous")


def test_parse_int(validator):
    assert validator.parse_int("7", "pollId") == 7
    assert validator.parse_int(7, "pollId") == 7
    for bad in ("abc", None, True, [1]):
        with pytest.raises(InvalidInput):
            validator.parse_int(bad, "pollId")


def test_notification_preferences(validator):
    assert validator.notification_preferences(None) == {"email": True, "text": False}
    assert validator.notification_preferences({"text": True}) == {"email": False, "text": True}
    with pytest.raises(InvalidInput):
        validator.notification_preferences(["email"])
    with pytest.raises(InvalidInput):
        validator.notification_preferences({"email": 1})

# civic_portal/security/input_validator.py

import re

import bleach

from civic_portal.errors import InvalidInput

# Input validation and sanitization for user-supplied text (comments,
# suggestions, poll definitions, account fields).


class InputValidator:
    def __init__(self):
        self.patterns = {
            'username': re.compile(r'^[A-Za-z0-9_.-]{3,64}$'),
            'voter_id': re.compile(r'^[A-Za-z0-9-]{1,32}$'),
            'xss_script': re.compile(r'<script[^>]*>.*?</script>', re.IGNORECASE | re.DOTALL),
            'xss_event': re.compile(r'\bon\w+\s*=', re.IGNORECASE),
        }

    def sanitize_string(self, input_str, max_length=255):
        if not isinstance(input_str, str):
            raise InvalidInput("Expected text input")
        input_str = input_str[:max_length]
        sanitized = re.sub(self.patterns['xss_script'], '', input_str)
        sanitized = re.sub(self.patterns['xss_event'], '', sanitized)
        # Strip all markup; stored text is rendered escaped by the UI
        sanitized = bleach.clean(sanitized, tags=set(), attributes={}, strip=True)
        return sanitized.strip()

    def require_text(self, value, field, max_length=255):
        if value is None:
            raise InvalidInput(f"{field} is required")
        cleaned = self.sanitize_string(value, max_length=max_length)
        if not cleaned:
            raise InvalidInput(f"{field} must not be empty")
        return cleaned

    def optional_text(self, value, max_length=255):
        if value is None:
            return ''
        return self.sanitize_string(value, max_length=max_length)

    def validate_username(self, username):
        return isinstance(username, str) and bool(self.patterns['username'].match(username))

    def validate_voter_id(self, voter_id):
        return isinstance(voter_id, str) and bool(self.patterns['voter_id'].match(voter_id.strip()))

    def parse_bool(self, value, field):
        if isinstance(value, bool):
            return value
        if value is None:
            return False
        raise InvalidInput(f"{field} must be true or false")

    def parse_int(self, value, field):
        if isinstance(value, bool):
            raise InvalidInput(f"{field} must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise InvalidInput(f"{field} must be an integer")

    def notification_preferences(self, prefs):
        if prefs is None:
            return {"email": True, "text": False}
        if not isinstance(prefs, dict):
            raise InvalidInput("notifications must be an object")
        return {
            "email": self.parse_bool(prefs.get("email", False), "notifications.email"),
            "text": self.parse_bool(prefs.get("text", False), "notifications.text"),
        }

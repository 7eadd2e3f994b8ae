# civic_portal/errors.py
"""Error taxonomy for the voter portal core.

Every failure the core reports to a caller is a ``PortalError`` subclass
carrying an HTTP status and a stable error code:

- NotFound (404): PollNotFound, CommentNotFound, AccountNotFound, NoAccountForVoter
- Conflict (409): UsernameTaken, VoterAlreadyRegistered, PollClosed
- Forbidden (403): non-admin on a privileged operation, banned account
- InvalidInput (400): InvalidPollDefinition, UnknownOption, InvalidAction, WeakPassword
- Unauthenticated (401): InvalidCredentials, IdentityNotVerified, NotAuthenticated
- TooManyAttempts (429): identity checks throttled
- TemporarilyUnavailable (503): registry or store did not answer in time
- NoDeliveryChannel (503): a temporary credential could not be delivered

Identity and credential failures use fixed messages so a response never
reveals which field mismatched.
"""

from flask import current_app, jsonify


class PortalError(Exception):
    status_code = 500
    code = "InternalError"
    message = "An error occurred, please try again."

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self):
        return {"success": False, "error": self.code, "message": self.message}


class NotFound(PortalError):
    status_code = 404
    code = "NotFound"
    message = "Not found."


class PollNotFound(NotFound):
    code = "PollNotFound"
    message = "Poll not found."


class CommentNotFound(NotFound):
    code = "CommentNotFound"
    message = "Comment not found."


class AccountNotFound(NotFound):
    code = "AccountNotFound"
    message = "Account not found."


class NoAccountForVoter(NotFound):
    code = "NoAccountForVoter"
    message = "No account is registered for this voter. Please sign up first."


class Conflict(PortalError):
    status_code = 409
    code = "Conflict"
    message = "Conflict."


class UsernameTaken(Conflict):
    code = "UsernameTaken"
    message = "That username is already taken."


class VoterAlreadyRegistered(Conflict):
    code = "VoterAlreadyRegistered"
    message = "An account already exists for this voter."


class PollClosed(Conflict):
    code = "PollClosed"
    message = "This poll is closed."


class Forbidden(PortalError):
    status_code = 403
    code = "Forbidden"
    message = "Forbidden."


class InvalidInput(PortalError):
    status_code = 400
    code = "InvalidInput"
    message = "Invalid input."


class InvalidPollDefinition(InvalidInput):
    code = "InvalidPollDefinition"
    message = "A poll needs a question and at least two distinct, non-empty options."


class UnknownOption(InvalidInput):
    code = "UnknownOption"
    message = "That option does not belong to this poll."


class InvalidAction(InvalidInput):
    code = "InvalidAction"
    message = "Unknown admin action."


class WeakPassword(InvalidInput):
    code = "WeakPassword"
    message = ("Password must be at least 12 characters and use three of: "
               "uppercase, lowercase, digits, symbols.")


class Unauthenticated(PortalError):
    status_code = 401
    code = "Unauthenticated"
    message = "Authentication required."


class InvalidCredentials(Unauthenticated):
    code = "InvalidCredentials"
    message = "Invalid username or password."


class IdentityNotVerified(Unauthenticated):
    code = "IdentityNotVerified"
    message = "No matching voter record was found."


class NotAuthenticated(Unauthenticated):
    code = "NotAuthenticated"


class TooManyAttempts(PortalError):
    status_code = 429
    code = "TooManyAttempts"
    message = "Too many attempts. Please wait before trying again."

    def __init__(self, retry_after=0, message=None):
        super().__init__(message)
        self.retry_after = int(retry_after)


class TemporarilyUnavailable(PortalError):
    status_code = 503
    code = "TemporarilyUnavailable"
    message = "The service is temporarily unavailable. Please try again shortly."


class NoDeliveryChannel(PortalError):
    status_code = 503
    code = "NoDeliveryChannel"
    message = ("A temporary password could not be delivered, so your password was not changed. "
               "Please contact the County Clerk's office.")


def register_error_handlers(app):
    @app.errorhandler(PortalError)
    def handle_portal_error(error):
        body = error.to_dict()
        if isinstance(error, IdentityNotVerified):
            body["contact"] = current_app.config.get("SUPPORT_CONTACT")
        response = jsonify(body)
        response.status_code = error.status_code
        if isinstance(error, TooManyAttempts) and error.retry_after:
            response.headers["Retry-After"] = str(error.retry_after)
        return response

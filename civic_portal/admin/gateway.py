# civic_portal/admin/gateway.py

import logging
from datetime import datetime, timezone
from enum import Enum

from civic_portal.database import store
from civic_portal.errors import Forbidden, InvalidAction, InvalidInput, NotAuthenticated

logger = logging.getLogger(__name__)

# Privileged operations. Every call checks the caller's admin flag before
# touching the poll engine or the account service.


class AdminAction(Enum):
    CREATE_POLL = "CREATE_POLL"
    BAN_USER = "BAN_USER"
    MODERATE_COMMENT = "MODERATE_COMMENT"
    CLOSE_POLL = "CLOSE_POLL"


def parse_expiry(value):
    if value in (None, ''):
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise InvalidInput("expiresAt must be an ISO-8601 timestamp")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class ModerationGateway:
    def __init__(self, poll_engine, account_service, validator, audit_logger=None):
        self.poll_engine = poll_engine
        self.account_service = account_service
        self.validator = validator
        self.audit_logger = audit_logger

    @staticmethod
    def check_admin(account):
        if account is None:
            raise NotAuthenticated()
        if not account.is_admin or account.is_banned:
            raise Forbidden("Forbidden: Admins only")
        return account

    def _audit(self, admin, action, data):
        logger.info(f"Admin {admin.id} performed {action.value}")
        if self.audit_logger is not None:
            self.audit_logger.log_event('admin_action', dict(action=action.value, **data),
                                        account_id=admin.id)

    def create_poll(self, admin, question, description, options, expires_at=None):
        self.check_admin(admin)
        poll = self.poll_engine.create_poll(question, description, options,
                                            expires_at=expires_at, created_by=admin.id)
        self._audit(admin, AdminAction.CREATE_POLL, {'poll_id': poll.id})
        return poll

    def ban_user(self, admin, account_id, banned=True):
        self.check_admin(admin)
        target = self.account_service.get_account(account_id)
        if target.id == admin.id:
            raise InvalidInput("Admins cannot change their own ban status")
        target.is_banned = bool(banned)
        store.commit()
        self._audit(admin, AdminAction.BAN_USER, {'target_account_id': target.id, 'banned': target.is_banned})
        return target

    def hide_comment(self, admin, comment_id, hidden=True):
        self.check_admin(admin)
        comment = self.poll_engine.hide_comment(comment_id, hidden)
        self._audit(admin, AdminAction.MODERATE_COMMENT, {'comment_id': comment.id, 'hidden': comment.is_hidden})
        return comment

    def list_comments(self, admin, poll_id):
        """Every comment on the poll, hidden ones included."""
        self.check_admin(admin)
        return self.poll_engine.list_comments(poll_id, include_hidden=True)

    def close_poll(self, admin, poll_id):
        self.check_admin(admin)
        poll = self.poll_engine.close_poll(poll_id)
        self._audit(admin, AdminAction.CLOSE_POLL, {'poll_id': poll.id})
        return poll

    def dispatch(self, admin, action, payload):
        """Run an ``admin-action`` request and return the response body."""
        self.check_admin(admin)
        try:
            action = AdminAction(action)
        except ValueError:
            raise InvalidAction()
        if not isinstance(payload, dict):
            raise InvalidInput("payload must be an object")

        if action is AdminAction.CREATE_POLL:
            poll_data = payload.get('pollData') or payload
            if not isinstance(poll_data, dict):
                raise InvalidInput("pollData must be an object")
            poll = self.create_poll(
                admin,
                poll_data.get('question'),
                poll_data.get('description'),
                payload.get('options'),
                expires_at=parse_expiry(poll_data.get('expiresAt')),
            )
            return {"success": True, "poll": poll.to_dict()}

        if action is AdminAction.BAN_USER:
            target = self.ban_user(
                admin,
                self.validator.parse_int(payload.get('targetUserId'), 'targetUserId'),
                self.validator.parse_bool(payload.get('isBanned', True), 'isBanned'),
            )
            return {"success": True, "accountId": target.id, "isBanned": target.is_banned}

        if action is AdminAction.MODERATE_COMMENT:
            comment = self.hide_comment(
                admin,
                self.validator.parse_int(payload.get('commentId'), 'commentId'),
                self.validator.parse_bool(payload.get('isHidden', True), 'isHidden'),
            )
            return {"success": True, "commentId": comment.id, "isHidden": comment.is_hidden}

        poll = self.close_poll(admin, self.validator.parse_int(payload.get('pollId'), 'pollId'))
        return {"success": True, "poll": poll.to_dict()}

# civic_portal/accounts/service.py
"""Account lifecycle: signup, login and password reset.

Every account is tied to exactly one verified registry voter. Signup and
reset both re-run identity verification; the district is copied from the
registry at signup and never taken from the caller.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from civic_portal import db
from civic_portal.audit.audit_logger import hash_voter_id
from civic_portal.database import store
from civic_portal.database.models import Account
from civic_portal.errors import (
    AccountNotFound, InvalidCredentials, InvalidInput, NoAccountForVoter,
    NoDeliveryChannel, UsernameTaken, VoterAlreadyRegistered,
)

logger = logging.getLogger(__name__)


@dataclass
class AuthSession:
    account: Account
    access_token: str

    def to_dict(self):
        return {"account": self.account.to_dict(), "accessToken": self.access_token}


@dataclass
class PasswordReset:
    account: Account
    temp_credential: str
    delivered: bool


class AccountService:
    def __init__(self, verifier, password_service, token_manager, validator,
                 notifier=None, audit_logger=None):
        self.verifier = verifier
        self.password_service = password_service
        self.token_manager = token_manager
        self.validator = validator
        self.notifier = notifier
        self.audit_logger = audit_logger
        self._dummy_hash = None

    def _audit(self, event_type, data, account_id=None):
        if self.audit_logger is not None:
            self.audit_logger.log_event(event_type, data, account_id=account_id)

    def _find_by(self, **criteria):
        stmt = select(Account).filter_by(**criteria)
        return store.read(lambda: db.session.execute(stmt).scalar_one_or_none())

    def get_account(self, account_id) -> Account:
        account = store.read(db.session.get, Account, account_id)
        if account is None:
            raise AccountNotFound()
        return account

    def sign_up(self, full_name, voter_id, username, password, notification_prefs=None,
                secondary_factors=(), email=None, phone=None, client=None) -> AuthSession:
        full_name = self.validator.require_text(full_name, "fullName", max_length=200)
        username = username.strip() if isinstance(username, str) else ""
        if not self.validator.validate_username(username):
            raise InvalidInput("Username must be 3-64 letters, digits, dots, dashes or underscores")
        prefs = self.validator.notification_preferences(notification_prefs)

        identity = self.verifier.verify_full_name(voter_id, full_name, *secondary_factors,
                                                  client=client)

        if self._find_by(username=username) is not None:
            raise UsernameTaken()
        if self._find_by(voter_id=identity.voter_id) is not None:
            raise VoterAlreadyRegistered()

        account = Account(
            voter_id=identity.voter_id,
            username=username,
            password_hash=self.password_service.hash_password(password),
            full_name=full_name,
            district=identity.district,
            email=self.validator.optional_text(email, max_length=254) or None,
            phone=self.validator.optional_text(phone, max_length=32) or None,
            notification_preferences=prefs,
        )
        try:
            store.write(db.session.add, account)
        except IntegrityError:
            # Lost a race against a concurrent signup; report the same conflicts
            if self._find_by(username=username) is not None:
                raise UsernameTaken()
            raise VoterAlreadyRegistered()

        logger.info(f"Account {account.id} created for district {account.district}")
        self._audit('account_created', {'voter': hash_voter_id(identity.voter_id),
                                        'district': account.district}, account_id=account.id)
        return AuthSession(account=account, access_token=self.token_manager.generate_token(account))

    def log_in(self, username, password) -> AuthSession:
        account = None
        if isinstance(username, str) and username.strip():
            account = self._find_by(username=username.strip())
        if account is None:
            # Spend the same hashing work so timing does not reveal unknown usernames
            if self._dummy_hash is None:
                self._dummy_hash = self.password_service.ph.hash("not-a-real-password")
            self.password_service.verify_password(password, self._dummy_hash)
            self._audit('failed_login', {'reason': 'invalid_credentials'})
            raise InvalidCredentials()
        if not self.password_service.verify_password(password, account.password_hash):
            self._audit('failed_login', {'reason': 'invalid_credentials'}, account_id=account.id)
            raise InvalidCredentials()

        if self.password_service.needs_rehash(account.password_hash):
            account.password_hash = self.password_service.ph.hash(password)
            store.commit()

        self._audit('successful_login', {'district': account.district}, account_id=account.id)
        return AuthSession(account=account, access_token=self.token_manager.generate_token(account))

    def request_password_reset(self, full_name, voter_id, secondary_factor,
                               client=None, echo=False) -> PasswordReset:
        """Issue a temporary password for the verified voter's account.

        The new hash is stored only once the credential has been handed to a
        delivery channel, or when ``echo`` returns it to the caller directly.
        Otherwise the old password stays valid and NoDeliveryChannel is raised.
        """
        identity = self.verifier.verify_full_name(voter_id, full_name, secondary_factor,
                                                  client=client)
        account = self._find_by(voter_id=identity.voter_id)
        if account is None:
            raise NoAccountForVoter()

        if not echo and (self.notifier is None or not self.notifier.can_deliver(account)):
            self._audit('password_reset_failed', {'reason': 'no_delivery_channel'}, account_id=account.id)
            raise NoDeliveryChannel()

        temp_credential = self.password_service.generate_temporary_password()
        new_hash = self.password_service.hash_password(temp_credential)

        delivered = False
        if not echo:
            delivered = self.notifier.send_temporary_credential(account, temp_credential)
            if not delivered:
                self._audit('password_reset_failed', {'reason': 'delivery_failed'}, account_id=account.id)
                raise NoDeliveryChannel()

        account.password_hash = new_hash
        store.commit()
        self._audit('password_reset', {'delivered': delivered}, account_id=account.id)
        return PasswordReset(account=account, temp_credential=temp_credential, delivered=delivered)

    def update_notification_preferences(self, account_id, prefs) -> Account:
        account = self.get_account(account_id)
        account.notification_preferences = self.validator.notification_preferences(prefs)
        store.commit()
        return account

# civic_portal/services.py

from dataclasses import dataclass

from flask import current_app

from civic_portal.accounts.notifier import CredentialNotifier
from civic_portal.accounts.service import AccountService
from civic_portal.admin.gateway import ModerationGateway
from civic_portal.audit.audit_logger import AuditLogger
from civic_portal.encryption.password_hashing import PasswordHashingService
from civic_portal.identity.registry import RegistryStore
from civic_portal.identity.verifier import IdentityVerifier
from civic_portal.polls.engine import PollEngine
from civic_portal.polls.suggestions import SuggestionBox
from civic_portal.security.input_validator import InputValidator
from civic_portal.security.intrusion_detection import VerificationThrottle
from civic_portal.security.token_manager import TokenManager


@dataclass
class PortalServices:
    audit_logger: AuditLogger
    password_service: PasswordHashingService
    validator: InputValidator
    verifier: IdentityVerifier
    accounts: AccountService
    polls: PollEngine
    suggestions: SuggestionBox
    gateway: ModerationGateway

    @classmethod
    def from_app(cls, app):
        config = app.config
        audit_logger = AuditLogger.from_config(config)
        password_service = PasswordHashingService.from_config(config)
        validator = InputValidator()
        verifier = IdentityVerifier(
            RegistryStore(),
            validator=validator,
            throttle=VerificationThrottle.from_config(config),
            audit_logger=audit_logger,
        )
        accounts = AccountService(
            verifier, password_service, TokenManager(), validator,
            notifier=CredentialNotifier.from_config(config),
            audit_logger=audit_logger,
        )
        polls = PollEngine(
            validator, audit_logger=audit_logger,
            default_duration_days=config['POLL_DEFAULT_DURATION_DAYS'],
        )
        return cls(
            audit_logger=audit_logger,
            password_service=password_service,
            validator=validator,
            verifier=verifier,
            accounts=accounts,
            polls=polls,
            suggestions=SuggestionBox(validator),
            gateway=ModerationGateway(polls, accounts, validator, audit_logger=audit_logger),
        )


def services() -> PortalServices:
    return current_app.extensions['civic_portal']

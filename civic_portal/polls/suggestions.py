# civic_portal/polls/suggestions.py

from sqlalchemy import select

from civic_portal import db
from civic_portal.database import store
from civic_portal.database.models import Account, Suggestion
from civic_portal.errors import Forbidden, InvalidInput, NotAuthenticated

SUGGESTION_CATEGORIES = ('budget', 'infrastructure', 'transparency', 'services', 'other')


class SuggestionBox:
    """Voter suggestions to the county. Append-only and publicly listed."""

    def __init__(self, validator):
        self.validator = validator

    def submit(self, account_id, title, description, category) -> Suggestion:
        account = store.read(db.session.get, Account, account_id) if account_id is not None else None
        if account is None:
            raise NotAuthenticated()
        if account.is_banned:
            raise Forbidden("This account has been suspended.")

        category = self.validator.optional_text(category, max_length=32).lower() or 'other'
        if category not in SUGGESTION_CATEGORIES:
            raise InvalidInput(f"category must be one of: {', '.join(SUGGESTION_CATEGORIES)}")
        suggestion = Suggestion(
            account_id=account.id,
            title=self.validator.require_text(title, "title", max_length=200),
            description=self.validator.require_text(description, "description", max_length=5000),
            category=category,
        )
        store.write(db.session.add, suggestion)
        return suggestion

    def list_all(self):
        stmt = select(Suggestion).order_by(Suggestion.created_at.desc(), Suggestion.id.desc())
        return store.read(lambda: list(db.session.execute(stmt).scalars()))

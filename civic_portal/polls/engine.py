# civic_portal/polls/engine.py
"""Polls, votes and comment threads.

A poll is ``open`` until an admin closes it or its ``expires_at`` passes;
the effective status is derived at read time, so no background job is needed
to close expired polls.

Each account holds at most one vote per poll. Re-voting replaces the earlier
choice, including its anonymity flag, through an ``INSERT ... ON CONFLICT DO
UPDATE`` on the ``(poll_id, account_id)`` primary key, which keeps concurrent
requests from different app instances from creating duplicate rows.

Tally percentages are rounded half-up per option, so they need not sum to 100.
"""

import logging
from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite

from civic_portal import db
from civic_portal.audit.audit_logger import hash_voter_id
from civic_portal.database import store
from civic_portal.database.models import (
    POLL_CLOSED, Account, Comment, Poll, PollOption, Vote, utcnow,
)
from civic_portal.errors import (
    CommentNotFound, Forbidden, InvalidInput, InvalidPollDefinition, NotAuthenticated,
    PollClosed, PollNotFound, UnknownOption,
)

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 2000

_UPSERT_DIALECTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


def rounded_percent(count, total):
    """round(100 * count / total) with halves rounded up; 0 when nobody voted."""
    if total <= 0:
        return 0
    return (200 * count + total) // (2 * total)


class PollEngine:
    def __init__(self, validator, audit_logger=None, default_duration_days=7):
        self.validator = validator
        self.audit_logger = audit_logger
        self.default_duration = timedelta(days=default_duration_days)

    def _audit(self, event_type, data, account_id=None):
        if self.audit_logger is not None:
            self.audit_logger.log_event(event_type, data, account_id=account_id)

    # -- polls ---------------------------------------------------------------

    def get_poll(self, poll_id) -> Poll:
        poll = store.read(db.session.get, Poll, poll_id)
        if poll is None:
            raise PollNotFound()
        return poll

    def list_polls(self):
        stmt = select(Poll).order_by(Poll.created_at.desc(), Poll.id.desc())
        return store.read(lambda: list(db.session.execute(stmt).scalars()))

    def create_poll(self, question, description, options, expires_at=None, created_by=None) -> Poll:
        """Create a poll and its options in one transaction.

        Raises ``InvalidPollDefinition`` before anything is written if the
        question is empty or fewer than two distinct non-empty options remain.
        """
        try:
            question = self.validator.require_text(question, "question", max_length=500)
        except InvalidInput:
            raise InvalidPollDefinition()
        description = self.validator.optional_text(description, max_length=5000)
        if not isinstance(options, (list, tuple)):
            raise InvalidPollDefinition()

        texts = []
        for raw in options:
            if not isinstance(raw, str):
                raise InvalidPollDefinition()
            text = self.validator.sanitize_string(raw)
            if not text:
                continue
            if text.lower() in (t.lower() for t in texts):
                raise InvalidPollDefinition("Poll options must be distinct.")
            texts.append(text)
        if len(texts) < 2:
            raise InvalidPollDefinition()

        now = utcnow()
        expires_at = expires_at or now + self.default_duration
        if expires_at <= now:
            raise InvalidPollDefinition("A poll must expire in the future.")

        poll = Poll(question=question, description=description, created_at=now,
                    expires_at=expires_at, created_by=created_by)
        for position, text in enumerate(texts):
            poll.options.append(PollOption(position=position, text=text))

        # Poll and options share one transaction; a failure rolls back both
        store.write(db.session.add, poll)
        logger.info(f"Poll {poll.id} created with {len(texts)} options")
        return poll

    def close_poll(self, poll_id) -> Poll:
        poll = self.get_poll(poll_id)
        if poll.status != POLL_CLOSED:
            poll.status = POLL_CLOSED
            store.commit()
            logger.info(f"Poll {poll_id} closed")
        return poll

    # -- votes ---------------------------------------------------------------

    def _voting_account(self, account_id) -> Account:
        account = store.read(db.session.get, Account, account_id) if account_id is not None else None
        if account is None:
            raise NotAuthenticated()
        if account.is_banned:
            raise Forbidden("This account has been suspended.")
        return account

    def _upsert_vote(self, values):
        dialect = db.session.get_bind(mapper=Vote.__mapper__).dialect.name
        try:
            insert = _UPSERT_DIALECTS[dialect]
        except KeyError:
            raise RuntimeError(f"Vote upsert not supported on {dialect}")
        stmt = insert(Vote).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=['poll_id', 'account_id'],
            set_={
                'option_id': stmt.excluded.option_id,
                'is_anonymous': stmt.excluded.is_anonymous,
                'district': stmt.excluded.district,
                'cast_at': stmt.excluded.cast_at,
            },
        )
        db.session.execute(stmt)

    def cast_vote(self, poll_id, account_id, option_id, is_anonymous=False, now=None) -> Vote:
        account = self._voting_account(account_id)
        poll = self.get_poll(poll_id)
        now = now or utcnow()
        if not poll.is_open(now):
            raise PollClosed()
        if poll.option_by_id(option_id) is None:
            raise UnknownOption()

        store.write(self._upsert_vote, {
            'poll_id': poll.id,
            'account_id': account.id,
            'option_id': option_id,
            'is_anonymous': bool(is_anonymous),
            'district': account.district,
            'cast_at': now,
        })
        self._audit('vote_cast', {'poll_id': poll.id, 'voter': hash_voter_id(account.voter_id)},
                    account_id=account.id)
        return store.read(db.session.get, Vote, (poll.id, account.id))

    def tally(self, poll_id):
        poll = self.get_poll(poll_id)
        stmt = (select(Vote.option_id, func.count())
                .where(Vote.poll_id == poll.id)
                .group_by(Vote.option_id))
        counts = dict(store.read(lambda: db.session.execute(stmt).all()))
        total = sum(counts.values())
        return {
            "pollId": poll.id,
            "status": poll.effective_status(),
            "totalVotes": total,
            "options": [
                {
                    "optionId": option.id,
                    "text": option.text,
                    "count": counts.get(option.id, 0),
                    "percent": rounded_percent(counts.get(option.id, 0), total),
                }
                for option in poll.options
            ],
        }

    def list_voters(self, poll_id, option_id):
        """Voters for one option. District is always shown; name and avatar only
        when that particular vote was not cast anonymously."""
        poll = self.get_poll(poll_id)
        if poll.option_by_id(option_id) is None:
            raise UnknownOption()
        stmt = (select(Vote)
                .where(Vote.poll_id == poll.id, Vote.option_id == option_id)
                .order_by(Vote.cast_at))
        votes = store.read(lambda: list(db.session.execute(stmt).scalars()))

        voters = []
        for vote in votes:
            entry = {"district": vote.district, "isAnonymous": vote.is_anonymous,
                     "fullName": None, "avatarUrl": None}
            if not vote.is_anonymous:
                entry["fullName"] = vote.account.full_name
                entry["avatarUrl"] = vote.account.avatar_url
            voters.append(entry)
        return voters

    # -- comments ------------------------------------------------------------

    def post_comment(self, poll_id, account_id, content) -> Comment:
        # Commenting stays available after a poll closes
        poll = self.get_poll(poll_id)
        account = self._voting_account(account_id)
        content = self.validator.require_text(content, "content", max_length=MAX_COMMENT_LENGTH)
        comment = Comment(poll_id=poll.id, account_id=account.id, content=content)
        store.write(db.session.add, comment)
        return comment

    def list_comments(self, poll_id, include_hidden=False):
        poll = self.get_poll(poll_id)
        stmt = select(Comment).where(Comment.poll_id == poll.id)
        if not include_hidden:
            stmt = stmt.where(Comment.is_hidden.is_(False))
        stmt = stmt.order_by(Comment.created_at, Comment.id)
        return store.read(lambda: list(db.session.execute(stmt).scalars()))

    def hide_comment(self, comment_id, hidden=True) -> Comment:
        comment = store.read(db.session.get, Comment, comment_id)
        if comment is None:
            raise CommentNotFound()
        comment.is_hidden = bool(hidden)
        store.commit()
        return comment

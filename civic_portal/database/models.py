# civic_portal/database/models.py

from datetime import datetime, timezone

from civic_portal import db


def utcnow():
    # Naive UTC, matching what SQLite and PostgreSQL DateTime columns hand back
    return datetime.now(timezone.utc).replace(tzinfo=None)


class VoterRegistryEntry(db.Model):
    """Eligible voter as published by the county registrar. Read-only here."""
    __tablename__ = 'voter_registry'
    voter_id = db.Column(db.String(32), primary_key=True)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=False)
    date_of_birth = db.Column(db.String(10), nullable=False)  # ISO yyyy-mm-dd
    street_address = db.Column(db.String(255), nullable=False)
    district = db.Column(db.String(50), nullable=False)

    @property
    def full_name(self):
        return " ".join(part for part in (self.first_name, self.last_name) if part)


def default_notification_preferences():
    return {"email": True, "text": False}


class Account(db.Model):
    __tablename__ = 'accounts'
    id = db.Column(db.Integer, primary_key=True)
    voter_id = db.Column(db.String(32), unique=True, nullable=False)  # 1:1 with a registry row
    username = db.Column(db.String(64), unique=True, nullable=False)
    password_hash = db.Column(db.String(200), nullable=False)  # Argon2id
    full_name = db.Column(db.String(200), nullable=False)
    district = db.Column(db.String(50), nullable=False)
    email = db.Column(db.String(254), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    avatar_url = db.Column(db.String(500), nullable=True)
    notification_preferences = db.Column(db.JSON, nullable=False, default=default_notification_preferences)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    is_banned = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "accountId": self.id,
            "voterId": self.voter_id,
            "username": self.username,
            "fullName": self.full_name,
            "district": self.district,
            "avatarUrl": self.avatar_url,
            "notifications": dict(self.notification_preferences or {}),
            "isAdmin": self.is_admin,
            "isBanned": self.is_banned,
        }

    def __repr__(self):
        return f'<Account {self.id} {self.username}>'


POLL_OPEN = 'open'
POLL_CLOSED = 'closed'


class Poll(db.Model):
    __tablename__ = 'polls'
    id = db.Column(db.Integer, primary_key=True)
    question = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    status = db.Column(db.String(10), nullable=False, default=POLL_OPEN)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey('accounts.id'), nullable=True)

    options = db.relationship(
        'PollOption', backref='poll', lazy=True,
        order_by='PollOption.position', cascade='all, delete-orphan',
    )

    def effective_status(self, now=None):
        """Stored status, or closed once ``expires_at`` has passed."""
        now = now or utcnow()
        if self.status == POLL_CLOSED or self.expires_at <= now:
            return POLL_CLOSED
        return POLL_OPEN

    def is_open(self, now=None):
        return self.effective_status(now) == POLL_OPEN

    def option_by_id(self, option_id):
        for option in self.options:
            if option.id == option_id:
                return option
        return None

    def to_dict(self, now=None):
        return {
            "pollId": self.id,
            "question": self.question,
            "description": self.description,
            "options": [{"optionId": o.id, "text": o.text} for o in self.options],
            "status": self.effective_status(now),
            "createdAt": self.created_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
        }


class PollOption(db.Model):
    __tablename__ = 'poll_options'
    __table_args__ = (db.UniqueConstraint('poll_id', 'position', name='uq_poll_option_position'),)
    id = db.Column(db.Integer, primary_key=True)
    poll_id = db.Column(db.Integer, db.ForeignKey('polls.id'), nullable=False)
    position = db.Column(db.Integer, nullable=False)  # display order
    text = db.Column(db.String(255), nullable=False)


class Vote(db.Model):
    # One row per (poll, account); re-voting upserts this row
    __tablename__ = 'votes'
    poll_id = db.Column(db.Integer, db.ForeignKey('polls.id'), primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey('accounts.id'), primary_key=True)
    option_id = db.Column(db.Integer, db.ForeignKey('poll_options.id'), nullable=False)
    is_anonymous = db.Column(db.Boolean, nullable=False, default=False)
    district = db.Column(db.String(50), nullable=False)
    cast_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    account = db.relationship('Account', lazy='joined')

    def __repr__(self):
        return f'<Vote poll={self.poll_id} account={self.account_id} option={self.option_id}>'


class Comment(db.Model):
    __tablename__ = 'poll_comments'
    id = db.Column(db.Integer, primary_key=True)
    poll_id = db.Column(db.Integer, db.ForeignKey('polls.id'), nullable=False, index=True)
    account_id = db.Column(db.Integer, db.ForeignKey('accounts.id'), nullable=False)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    is_hidden = db.Column(db.Boolean, nullable=False, default=False)

    author = db.relationship('Account', lazy='joined')

    def to_dict(self):
        return {
            "commentId": self.id,
            "pollId": self.poll_id,
            "author": self.author.full_name if self.author else None,
            "district": self.author.district if self.author else None,
            "content": self.content,
            "createdAt": self.created_at.isoformat(),
            "isHidden": self.is_hidden,
        }


class Suggestion(db.Model):
    __tablename__ = 'suggestions'
    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey('accounts.id'), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(50), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    author = db.relationship('Account', lazy='joined')

    def to_dict(self):
        return {
            "suggestionId": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "author": self.author.full_name if self.author else None,
            "createdAt": self.created_at.isoformat(),
        }

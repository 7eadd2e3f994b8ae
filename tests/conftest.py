import pytest

from civic_portal import create_app, db
from civic_portal.config import TestingConfig
from civic_portal.seed import load_registry_rows, seed_admin

REGISTRY = [
    {"voter_id": "123456", "first_name": "Jane", "last_name": "Doe",
     "date_of_birth": "1980-01-01", "street_address": "100 Main St", "district": "4"},
    {"voter_id": "234567", "first_name": "John", "last_name": "Smith",
     "date_of_birth": "1975-05-05", "street_address": "22 Elm Street", "district": "2"},
    {"voter_id": "345678", "first_name": "Anna", "last_name": "van der Berg",
     "date_of_birth": "1990-09-09", "street_address": "5 Oak Ave", "district": "1"},
    {"voter_id": "456789", "first_name": "Sam", "last_name": "Lee",
     "date_of_birth": "1985-03-03", "street_address": "9 Pine Rd", "district": "3"},
]

PASSWORD = "CivicPass1234"
ADMIN_PASSWORD = "AdminPass1234!"


@pytest.fixture
def app(tmp_path):
    app = create_app(TestingConfig, {
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'portal.db'}",
        'AUDIT_LOG_DIR': str(tmp_path / 'logs'),
    })
    with app.app_context():
        db.create_all()
        load_registry_rows(REGISTRY)
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def services(app):
    return app.extensions['civic_portal']


@pytest.fixture
def make_voter(services):
    """Sign up a registry voter and return the account."""
    def _make(voter_id="123456", full_name="Jane Doe", username=None, dob=None):
        entry = next(r for r in REGISTRY if r["voter_id"] == voter_id)
        session = services.accounts.sign_up(
            full_name, voter_id, username or f"user{voter_id}", PASSWORD,
            secondary_factors=(dob or entry["date_of_birth"],),
        )
        return session.account
    return _make


@pytest.fixture
def admin(app):
    account, _ = seed_admin("clerk", ADMIN_PASSWORD, "County Clerk", "County")
    return account


@pytest.fixture
def poll(services, admin):
    return services.gateway.create_poll(
        admin, "Should the county fund a new library?", "Budget item 12", ["Yes", "No", "Undecided"],
    )

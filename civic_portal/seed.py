# civic_portal/seed.py

# Provisioning commands. Admins are ordinary account rows created here at
# deploy time; there is no special-cased admin login.

import csv

import click
from flask import current_app
from sqlalchemy import select

from civic_portal import db
from civic_portal.database.models import Account, VoterRegistryEntry

REGISTRY_COLUMNS = ('voter_id', 'last_name', 'date_of_birth', 'street_address', 'district')


def seed_admin(username, password, full_name, district, voter_id=None, email=None):
    password_service = current_app.extensions['civic_portal'].password_service
    existing = db.session.execute(select(Account).filter_by(username=username)).scalar_one_or_none()
    if existing is not None:
        existing.is_admin = True
        db.session.commit()
        return existing, False
    account = Account(
        voter_id=voter_id or f"ADMIN-{username}",
        username=username,
        password_hash=password_service.hash_password(password),
        full_name=full_name,
        district=district,
        email=email,
        is_admin=True,
    )
    db.session.add(account)
    db.session.commit()
    return account, True


def load_registry_rows(rows):
    """Insert or refresh registry rows from dicts keyed by REGISTRY_COLUMNS."""
    count = 0
    for row in rows:
        missing = [c for c in REGISTRY_COLUMNS if not (row.get(c) or '').strip()]
        if missing:
            raise ValueError(f"Registry row missing {', '.join(missing)}: {row}")
        db.session.merge(VoterRegistryEntry(
            voter_id=row['voter_id'].strip(),
            first_name=(row.get('first_name') or '').strip() or None,
            last_name=row['last_name'].strip(),
            date_of_birth=row['date_of_birth'].strip(),
            street_address=row['street_address'].strip(),
            district=row['district'].strip(),
        ))
        count += 1
    db.session.commit()
    return count


def register_commands(app):
    @app.cli.command('seed-admin')
    @click.option('--username', required=True)
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option('--full-name', required=True)
    @click.option('--district', default='County')
    @click.option('--voter-id', default=None)
    @click.option('--email', default=None)
    def seed_admin_command(username, password, full_name, district, voter_id, email):
        """Create (or promote) an administrator account."""
        account, created = seed_admin(username, password, full_name, district, voter_id, email)
        click.echo(f"{'Created' if created else 'Promoted'} admin account {account.username} (id {account.id})")

    @app.cli.command('load-registry')
    @click.argument('csv_path', type=click.Path(exists=True, dir_okay=False))
    def load_registry_command(csv_path):
        """Load voter registry rows from a CSV export (development only)."""
        with open(csv_path, newline='', encoding='utf-8') as f:
            count = load_registry_rows(csv.DictReader(f))
        click.echo(f"Loaded {count} registry rows")

    @app.cli.command('audit-verify')
    def audit_verify_command():
        """Check the audit log's hash chain and signatures."""
        audit_logger = current_app.extensions['civic_portal'].audit_logger
        count = len(audit_logger.read_entries())
        if not audit_logger.verify_log_integrity():
            raise click.ClickException(f"Audit log {audit_logger.log_file} failed verification")
        click.echo(f"Audit log intact ({count} entries)")

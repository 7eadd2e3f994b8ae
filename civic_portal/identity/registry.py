# civic_portal/identity/registry.py

from sqlalchemy import func, select

from civic_portal import db
from civic_portal.database import store
from civic_portal.database.models import VoterRegistryEntry


class RegistryStore:
    """Read-only access to the county voter registry."""

    def find_by_voter_id_and_last_name(self, voter_id, last_name):
        voter_id = (voter_id or "").strip()
        last_name = (last_name or "").strip()
        if not voter_id or not last_name:
            return None
        stmt = select(VoterRegistryEntry).where(
            VoterRegistryEntry.voter_id == voter_id,
            func.lower(VoterRegistryEntry.last_name) == last_name.lower(),
        )
        return store.read(lambda: db.session.execute(stmt).scalar_one_or_none())

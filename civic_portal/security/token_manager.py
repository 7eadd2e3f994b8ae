# civic_portal/security/token_manager.py
from datetime import timedelta

from flask_jwt_extended import create_access_token

# Bearer tokens identifying an account, issued on login and signup.


class TokenManager:
    def generate_token(self, account, expires_in: int = None) -> str:
        expires_delta = timedelta(seconds=expires_in) if expires_in else None
        return create_access_token(
            identity=str(account.id),
            additional_claims={"district": account.district},
            expires_delta=expires_delta,
        )

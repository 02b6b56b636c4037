"""
Credential store lookups.
"""

from sqlalchemy.orm import Session

from coderevu.database import Account
from coderevu.errors import CredentialNotFoundError

GITHUB_PROVIDER_ID = "github"


def get_github_token(db: Session, user_id: str) -> str:
    """
    Return the GitHub access token linked to a user.

    Raises:
        CredentialNotFoundError: If the user has no GitHub account or token
    """
    account = (
        db.query(Account)
        .filter(Account.user_id == user_id, Account.provider_id == GITHUB_PROVIDER_ID)
        .first()
    )

    if account is None or not account.access_token:
        raise CredentialNotFoundError("No GitHub access token found")

    return account.access_token

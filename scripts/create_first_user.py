import sys
import os

# Add current directory to path
sys.path.append(os.getcwd())

from taskflow.core.security import get_password_hash
from taskflow.core.session import SessionContext
from taskflow.db.session import get_store, init_db
from taskflow.db.store import EntityStore, SERVER_TIMESTAMP
from taskflow.models.user import Account, UserProfile
from taskflow.services.companies import CompanyService


def create_initial_workspace(store: EntityStore, email: str, password: str, display_name: str, company_name: str):
    """
    Create an admin account that owns a new company.

    Returns the existing profile instead when the account is already set up.
    """
    matches = store.query(Account, filters={"email": email}, limit=1)
    if matches:
        print(f"User with email {email} already exists.")
        return store.get(UserProfile, matches[0].id)

    print(f"Creating user {email}...")
    account_id = store.add(Account, {
        "email": email,
        "password": get_password_hash(password),
        "display_name": display_name,
        "created_at": SERVER_TIMESTAMP,
    })
    session = SessionContext.from_account(store.get(Account, account_id))
    company = CompanyService(store).create_company(company_name, session)
    print(f"Company '{company.name}' created, invite code: {company.id}")
    return store.get(UserProfile, account_id)


if __name__ == "__main__":
    init_db()
    profile = create_initial_workspace(
        get_store(),
        email="admin@example.com",
        password="adminpassword",
        display_name="Workspace Admin",
        company_name="TaskFlow Demo",
    )
    print(f"Email: {profile.email}")
    print(f"Role: {profile.role.value}")

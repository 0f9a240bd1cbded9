"""User accounts stored in the JSON database."""

import uuid

from .models import Role, User, utc_now
from .storage import Storage


class UserStore:
    """Lookup and creation of user accounts."""

    SECTION = "users"

    def __init__(self, storage: Storage):
        self.storage = storage

    def get(self, user_id: str) -> User | None:
        record = self.storage.get(f"{self.SECTION}.{user_id}")
        return User(**record) if record else None

    def get_by_email(self, email: str) -> User | None:
        """Find a user by email (case-insensitive)."""
        email = email.strip().lower()
        for record in self.storage.get(self.SECTION, {}).values():
            if record.get("email") == email:
                return User(**record)
        return None

    def create(
        self,
        email: str,
        password_hash: str,
        role: Role = Role.USER,
        name: str | None = None,
    ) -> User:
        """Create a user.

        Raises:
            ValueError: If the email is invalid or already registered.
        """
        user = User(
            id=uuid.uuid4().hex,
            email=email,
            name=name,
            password_hash=password_hash,
            role=role,
        )
        with self.storage.transaction() as data:
            users = data.setdefault(self.SECTION, {})
            if any(u.get("email") == user.email for u in users.values()):
                raise ValueError(f"A user with email {user.email} already exists")
            users[user.id] = user.model_dump(mode="json")
        return user

    def update_password(self, user_id: str, password_hash: str) -> bool:
        with self.storage.transaction() as data:
            record = data.setdefault(self.SECTION, {}).get(user_id)
            if record is None:
                return False
            record["password_hash"] = password_hash
            return True

    def record_login(self, user_id: str) -> None:
        with self.storage.transaction() as data:
            record = data.setdefault(self.SECTION, {}).get(user_id)
            if record is not None:
                record["last_login"] = utc_now().isoformat()

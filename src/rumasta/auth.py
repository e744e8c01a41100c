import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Cookie

from .config import settings
from .database import get_db_connection
from .models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """Identity of the requester, passed explicitly to whatever needs it."""

    user: Optional[User] = None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


class UserStore:
    """User profiles keyed by the id handed out at sign-in."""

    def get(self, user_id: str) -> Optional[User]:
        conn = get_db_connection()
        try:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        return User(**dict(row)) if row else None

    def ensure_profile(self, email: str, username: Optional[str] = None) -> User:
        """Returns the profile for ``email``, creating it on first sign-in."""
        email = email.strip().lower()
        username = (username or "").strip() or email.split("@")[0]

        conn = get_db_connection()
        with conn:
            row = conn.execute("SELECT id FROM users WHERE email = ?", (email,)).fetchone()
            if row:
                user_id = row["id"]
                conn.execute(
                    "UPDATE users SET last_login = CURRENT_TIMESTAMP WHERE id = ?",
                    (user_id,),
                )
            else:
                user_id = str(uuid.uuid4())
                conn.execute(
                    """
                    INSERT INTO users (id, email, username, last_login)
                    VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                    """,
                    (user_id, email, username),
                )
                logger.info(f"Created profile {user_id} for {email}")
        conn.close()
        return self.get(user_id)


user_store = UserStore()


# --- Dependencies ---
def get_auth_context(
    user_id: Optional[str] = Cookie(None, alias=settings.USER_COOKIE_NAME)
) -> AuthContext:
    if not user_id:
        return AuthContext()
    return AuthContext(user=user_store.get(user_id))

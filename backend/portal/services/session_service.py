"""Server-side session registry.

A session is a snapshot of the signed-in user held in memory under a random
session id.  The client holds a signed JWT naming that id.  Every read
refreshes the snapshot's role and status from the persisted user record,
so role changes made by an administrator apply on the next request without
signing in again.

Snapshots live only as long as their token: expired entries are dropped
whenever a session is started, looked up or counted.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from portal.auth import create_session_token, decode_session_token, session_expiry
from portal.models.users import UserAccount
from portal.store import PortalRepository

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(self, repository: PortalRepository):
        self.repository = repository
        self._sessions: Dict[str, Tuple[UserAccount, datetime]] = {}

    def _prune_expired(self) -> None:
        now = datetime.now(timezone.utc)
        expired = [sid for sid, (_, expires_at) in self._sessions.items() if expires_at <= now]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.debug("Dropped %d expired sessions", len(expired))

    def set_session(self, user: UserAccount) -> str:
        """Register ``user`` as signed in and return the bearer token."""
        self._prune_expired()
        session_id = secrets.token_urlsafe(24)
        expires_at = session_expiry()
        self._sessions[session_id] = (user.model_copy(deep=True), expires_at)
        logger.info("Session started for user %s", user.id)
        return create_session_token(user.id, session_id, expires_at)

    async def get_session(self, token: Optional[str]) -> Optional[UserAccount]:
        """Current identity for ``token`` or ``None``.  Never raises."""
        if not token:
            return None
        self._prune_expired()
        claims = decode_session_token(token)
        if claims is None:
            return None

        entry = self._sessions.get(claims["sid"])
        if entry is None or entry[0].id != claims["sub"]:
            return None

        snapshot = entry[0]
        record = await self.repository.find_user(snapshot.id)
        if record is not None:
            snapshot.role = record.role
            snapshot.status = record.status
        return snapshot.model_copy(deep=True)

    def clear_session(self, token: Optional[str]) -> None:
        if not token:
            return
        claims = decode_session_token(token)
        if claims is None:
            return
        if self._sessions.pop(claims["sid"], None) is not None:
            logger.info("Session ended for user %s", claims["sub"])

    def active_session_count(self) -> int:
        self._prune_expired()
        return len(self._sessions)

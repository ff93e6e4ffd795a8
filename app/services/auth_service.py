import uuid
import hmac
import logging
import jwt
from app.db import db
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
)

"""AuthService: Handles login, token renewal and logout for the portal backend"""


logger = logging.getLogger(__name__)


def _session_key(user_id: str, session_id: str) -> str:
    return f"{user_id}:{session_id}"


class AuthService:
    @staticmethod
    def login(email: str, password: str) -> dict:
        """
        Checks the credentials and opens a new server-side session.
        Returns the identity plus an access/refresh token pair.
        """
        user = db.users.get(email)
        if not user or not user["is_active"]:
            logger.warning(f"Login failed: email={email} unknown or inactive")
            raise ValueError("Invalid Credentials")

        if not hmac.compare_digest(user["password"], password):
            logger.warning(f"Login failed: email={email} bad password")
            raise ValueError("Invalid Credentials")

        session_id = str(uuid.uuid4())
        claims = {
            "userId": user["id"],
            "role": user["role"],
            "sessionId": session_id,
        }
        access_token = create_access_token(claims)
        refresh_token = create_refresh_token(claims)

        db.refresh_tokens[_session_key(user["id"], session_id)] = refresh_token
        logger.info(f"Login success: user={user['id']} session={session_id}")

        return {
            "user": {
                "id": user["id"],
                "name": user["name"],
                "email": user["email"],
                "role": user["role"],
            },
            "accessToken": access_token,
            "refreshToken": refresh_token,
        }

    @staticmethod
    def refresh(refresh_token: str) -> dict:
        """
        Issues a new access token for a session that is still open.
        The refresh token itself is not rotated.
        """
        try:
            decoded = decode_refresh_token(refresh_token)
        except jwt.InvalidTokenError:
            logger.warning("Refresh failed: invalid refresh token")
            raise ValueError("Session expired, please login again")

        key = _session_key(decoded["userId"], decoded["sessionId"])
        stored = db.refresh_tokens.get(key)
        if not stored or not hmac.compare_digest(stored, refresh_token):
            logger.warning(f"Refresh failed: session={decoded['sessionId']} closed")
            raise ValueError("Session expired, please login again")

        claims = {
            "userId": decoded["userId"],
            "role": decoded["role"],
            "sessionId": decoded["sessionId"],
        }
        logger.info(f"Access token renewed: user={decoded['userId']} session={decoded['sessionId']}")
        return {"accessToken": create_access_token(claims)}

    @staticmethod
    def authenticate(access_token: str) -> dict:
        """
        Returns the access token claims if the token is valid and its session is open.
        """
        try:
            claims = decode_access_token(access_token)
        except jwt.InvalidTokenError:
            raise PermissionError("Unauthenticated")

        if _session_key(claims["userId"], claims["sessionId"]) not in db.refresh_tokens:
            raise PermissionError("Session expired or logged out")
        return claims

    @staticmethod
    def logout(claims: dict) -> None:
        db.refresh_tokens.pop(_session_key(claims["userId"], claims["sessionId"]), None)
        logger.info(f"Logout: user={claims['userId']} session={claims['sessionId']}")

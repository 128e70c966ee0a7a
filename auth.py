import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from database import UserStore
from errors import DuplicateIdentity, InvalidCredentials, InvalidToken, MissingField, MissingToken, NotFound
from models import Identity, User

logger = logging.getLogger(__name__)

TOKEN_LIFETIME = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_password_context(rounds: int = 10) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


class AuthGateway:
    """Turns credentials into signed 24h tokens and tokens back into identities.

    Tokens are never stored: a token is valid if it carries our signature and
    its ``exp`` claim is still in the future according to ``clock``.
    """

    def __init__(
        self,
        users: UserStore,
        secret: str,
        algorithm: str = "HS256",
        pwd_context: Optional[CryptContext] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.users = users
        self._secret = secret
        self._algorithm = algorithm
        self.pwd_context = pwd_context or make_password_context()
        self._clock = clock

    # Password hashing
    def hash_password(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        return self.pwd_context.verify(plain_password, hashed_password)

    # Token creation
    def create_access_token(self, user: User) -> str:
        issued_at = self._clock()
        claims = {
            "userId": user.id,
            "username": user.username,
            "email": user.email,
            "iat": int(issued_at.timestamp()),
            "exp": math.ceil((issued_at + TOKEN_LIFETIME).timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def register(self, username: Optional[str], email: Optional[str], password: Optional[str]):
        if not username or not email or not password:
            raise MissingField("Username, email and password are required")

        # Cheap pre-check so a duplicate doesn't pay for a bcrypt round;
        # UserStore.create re-checks atomically.
        if self.users.exists(username, email):
            raise DuplicateIdentity("Username or email already exists")

        user = self.users.create(username, email, self.hash_password(password))
        logger.info("User registered: %s (id=%s)", user.username, user.id)
        return user, self.create_access_token(user)

    def login(self, username_or_email: Optional[str], password: Optional[str]):
        if not username_or_email or not password:
            raise MissingField("Username and password are required")

        user = self.users.find_by_username_or_email(username_or_email)
        if user is None:
            # Spend the same hashing time as a real check.
            self.pwd_context.dummy_verify()
            logger.info("Login failed for %r", username_or_email)
            raise InvalidCredentials("Invalid credentials")
        if not self.verify_password(password, user.password):
            logger.info("Login failed for %r", username_or_email)
            raise InvalidCredentials("Invalid credentials")

        logger.info("Login succeeded for %s", user.username)
        return user, self.create_access_token(user)

    def verify(self, token: Optional[str]) -> Identity:
        if not token:
            raise MissingToken("Access token required")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            raise InvalidToken("Invalid or expired token")

        exp = payload.get("exp")
        user_id = payload.get("userId")
        username = payload.get("username")
        email = payload.get("email")
        if not isinstance(exp, int) or not isinstance(user_id, int):
            raise InvalidToken("Invalid or expired token")
        if not isinstance(username, str) or not isinstance(email, str):
            raise InvalidToken("Invalid or expired token")
        if self._clock().timestamp() >= exp:
            raise InvalidToken("Invalid or expired token")

        return Identity(user_id=user_id, username=username, email=email)

    def current_user(self, identity: Identity) -> User:
        user = self.users.get(identity.user_id)
        if user is None:
            raise NotFound("User not found")
        return user

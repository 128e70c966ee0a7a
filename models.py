from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    id: int
    username: str
    email: str
    password: str  # bcrypt hash


@dataclass
class Task:
    id: int
    title: str
    description: str
    completed: bool
    created_at: datetime
    user_id: int


@dataclass(frozen=True)
class Identity:
    """Claims recovered from a verified session token."""
    user_id: int
    username: str
    email: str

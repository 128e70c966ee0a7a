import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional

from errors import DuplicateIdentity, MissingField, NotFound
from models import Task, User

# In-memory tables. Nothing here survives a restart.

UPDATABLE_TASK_FIELDS = ("title", "description", "completed")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._users: list[User] = []
        self._next_id = 1

    def find_by_username_or_email(self, identifier: str) -> Optional[User]:
        with self._lock:
            user = self._find(identifier, identifier)
            return replace(user) if user else None

    def exists(self, username: str, email: str) -> bool:
        """True if the username or the email is already taken."""
        with self._lock:
            return self._find(username, email) is not None

    def get(self, user_id: int) -> Optional[User]:
        with self._lock:
            for user in self._users:
                if user.id == user_id:
                    return replace(user)
        return None

    def all(self) -> list[User]:
        with self._lock:
            return [replace(u) for u in self._users]

    def create(self, username: str, email: str, password_hash: str) -> User:
        with self._lock:
            if self._find(username, email):
                raise DuplicateIdentity("Username or email already exists")
            user = User(id=self._next_id, username=username, email=email, password=password_hash)
            self._next_id += 1
            self._users.append(user)
            return replace(user)

    def seed(self, users: list[User]):
        with self._lock:
            self._users.extend(users)
            self._next_id = max([self._next_id] + [u.id + 1 for u in users])

    def _find(self, username: str, email: str) -> Optional[User]:
        for user in self._users:
            if user.username == username or user.email == email:
                return user
        return None


class TaskStore:
    """Task table. Every lookup is scoped to the owning user id."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._lock = threading.Lock()
        self._tasks: list[Task] = []
        self._next_id = 1
        self._clock = clock

    def list_for_user(self, user_id: int) -> list[Task]:
        with self._lock:
            return [replace(t) for t in self._tasks if t.user_id == user_id]

    def get_for_user(self, user_id: int, task_id: int) -> Optional[Task]:
        with self._lock:
            task = self._owned(user_id, task_id)
            return replace(task) if task else None

    def create(self, user_id: int, title: Optional[str], description: Optional[str]) -> Task:
        if not title or not description:
            raise MissingField("Title and description are required")
        with self._lock:
            task = Task(
                id=self._next_id,
                title=title,
                description=description,
                completed=False,
                created_at=self._clock(),
                user_id=user_id,
            )
            self._next_id += 1
            self._tasks.append(task)
            return replace(task)

    def update(self, user_id: int, task_id: int, fields: dict) -> Task:
        with self._lock:
            task = self._owned(user_id, task_id)
            if task is None:
                raise NotFound("Task not found")
            for name in UPDATABLE_TASK_FIELDS:
                if name in fields:
                    setattr(task, name, fields[name])
            return replace(task)

    def delete(self, user_id: int, task_id: int) -> Task:
        with self._lock:
            task = self._owned(user_id, task_id)
            if task is None:
                raise NotFound("Task not found")
            self._tasks.remove(task)
            return task

    def seed(self, tasks: list[Task]):
        with self._lock:
            self._tasks.extend(tasks)
            self._next_id = max([self._next_id] + [t.id + 1 for t in tasks])

    def _owned(self, user_id: int, task_id: int) -> Optional[Task]:
        for task in self._tasks:
            if task.id == task_id and task.user_id == user_id:
                return task
        return None


def seed_demo_data(users: UserStore, tasks: TaskStore, password_hash: str):
    """Load the two demo accounts (password admin123) and their sample tasks."""
    users.seed([
        User(id=1, username="admin", email="admin@ejemplo.com", password=password_hash),
        User(id=2, username="usuario", email="usuario@ejemplo.com", password=password_hash),
    ])
    now = _utcnow()
    tasks.seed([
        Task(id=1, title="Learn Docker", description="Build containers for apps",
             completed=False, created_at=now, user_id=1),
        Task(id=2, title="Set up the API", description="Build the REST API",
             completed=True, created_at=now, user_id=1),
        Task(id=3, title="Connect the frontend", description="Talk to the API from the client",
             completed=False, created_at=now, user_id=2),
    ])

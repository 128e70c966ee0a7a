"""Command-line client for the tasks API.

Keeps the session token and user profile in a local JSON file so a login
survives between runs, re-checks it against ``/api/auth/me`` on startup and
forgets it as soon as the server answers 401/403.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import requests

from logging_setup import setup_logging

logger = logging.getLogger(__name__)

API_URL = os.getenv("API_URL", "http://localhost:4000")
SESSION_FILE = os.getenv("TASKS_SESSION_FILE", str(Path.home() / ".tasks_session.json"))
REQUEST_TIMEOUT = 15


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class SessionExpired(ApiError):
    pass


class SessionStore:
    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> Optional[dict]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable session file %s", self.path)
            return None
        if not isinstance(data, dict) or not data.get("token") or not data.get("user"):
            return None
        return data

    def save(self, token: str, user: dict):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"token": token, "user": user}), encoding="utf-8")

    def clear(self):
        if self.path.exists():
            self.path.unlink()


class TaskClient:
    def __init__(self, base_url: str, store: SessionStore, http=None):
        self.base_url = base_url.rstrip("/")
        self.store = store
        self.http = http or requests.Session()
        self.token: Optional[str] = None
        self.user: Optional[dict] = None

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    def _request(self, method: str, path: str, body=None, auth: bool = True) -> dict:
        headers = {"Content-Type": "application/json"}
        if auth:
            if not self.token:
                raise SessionExpired(401, "Not logged in")
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            resp = self.http.request(
                method, f"{self.base_url}{path}", json=body, headers=headers, timeout=REQUEST_TIMEOUT
            )
        except requests.RequestException as e:
            raise ApiError(0, f"Could not reach the server: {e}") from e

        try:
            payload = resp.json()
        except ValueError:
            payload = {"success": False, "message": f"Unexpected response ({resp.status_code})"}

        if auth and resp.status_code in (401, 403):
            self.logout()
            raise SessionExpired(resp.status_code, payload.get("message", "Session expired"))
        if resp.status_code >= 400 or not payload.get("success"):
            raise ApiError(resp.status_code, payload.get("message", "Request failed"))
        return payload

    def _start_session(self, payload: dict) -> dict:
        data = payload["data"]
        self.token = data["token"]
        self.user = data["user"]
        self.store.save(self.token, self.user)
        return self.user

    # Auth
    def register(self, username: str, email: str, password: str) -> dict:
        payload = self._request(
            "POST", "/api/auth/register",
            {"username": username, "email": email, "password": password}, auth=False,
        )
        return self._start_session(payload)

    def login(self, username: str, password: str) -> dict:
        payload = self._request(
            "POST", "/api/auth/login", {"username": username, "password": password}, auth=False
        )
        return self._start_session(payload)

    def restore(self) -> Optional[dict]:
        """Reload a saved session and check it is still accepted by the server."""
        saved = self.store.load()
        if saved is None:
            return None
        self.token = saved["token"]
        self.user = saved["user"]
        try:
            payload = self._request("GET", "/api/auth/me")
        except SessionExpired:
            return None
        except ApiError:
            self.logout()
            return None
        self.user = payload["data"]["user"]
        self.store.save(self.token, self.user)
        return self.user

    def logout(self):
        self.token = None
        self.user = None
        self.store.clear()

    def me(self) -> dict:
        return self._request("GET", "/api/auth/me")["data"]["user"]

    # Tasks
    def list_tasks(self) -> list:
        return self._request("GET", "/api/tasks")["data"]

    def get_task(self, task_id: int) -> dict:
        return self._request("GET", f"/api/tasks/{task_id}")["data"]

    def create_task(self, title: str, description: str) -> dict:
        return self._request("POST", "/api/tasks", {"title": title, "description": description})["data"]

    def update_task(self, task_id: int, **fields) -> dict:
        return self._request("PUT", f"/api/tasks/{task_id}", fields)["data"]

    def toggle_task(self, task_id: int) -> dict:
        task = self.get_task(task_id)
        return self.update_task(task_id, completed=not task["completed"])

    def delete_task(self, task_id: int) -> dict:
        return self._request("DELETE", f"/api/tasks/{task_id}")["data"]

    def health(self) -> dict:
        return self._request("GET", "/api/health", auth=False)


def _print_task(task: dict):
    mark = "x" if task["completed"] else " "
    print(f"[{mark}] #{task['id']} {task['title']} - {task['description']}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tasks", description="To-do list client")
    parser.add_argument("--api-url", default=API_URL)
    parser.add_argument("--session-file", default=SESSION_FILE)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("register", help="create an account and log in")
    p.add_argument("username")
    p.add_argument("email")
    p.add_argument("password")

    p = sub.add_parser("login", help="log in with username or email")
    p.add_argument("username")
    p.add_argument("password")

    sub.add_parser("logout", help="forget the saved session")
    sub.add_parser("me", help="show the logged-in user")
    sub.add_parser("list", help="list your tasks")

    p = sub.add_parser("add", help="create a task")
    p.add_argument("title")
    p.add_argument("description")

    p = sub.add_parser("toggle", help="flip a task between done and pending")
    p.add_argument("task_id", type=int)

    p = sub.add_parser("delete", help="delete a task")
    p.add_argument("task_id", type=int)

    sub.add_parser("health", help="check the backend is up")
    return parser


def main(argv=None, http=None) -> int:
    args = build_parser().parse_args(argv)
    client = TaskClient(args.api_url, SessionStore(args.session_file), http=http)

    try:
        if args.command == "register":
            user = client.register(args.username, args.email, args.password)
            print(f"Registered and logged in as {user['username']}")
        elif args.command == "login":
            user = client.login(args.username, args.password)
            print(f"Logged in as {user['username']}")
        elif args.command == "logout":
            client.logout()
            print("Logged out")
        elif args.command == "health":
            info = client.health()
            print(f"{info['message']} (uptime {info['uptime']:.0f}s)")
        else:
            if client.restore() is None:
                print("Not logged in", file=sys.stderr)
                return 1
            if args.command == "me":
                print(f"{client.user['username']} <{client.user['email']}>")
            elif args.command == "list":
                for task in client.list_tasks():
                    _print_task(task)
            elif args.command == "add":
                _print_task(client.create_task(args.title, args.description))
            elif args.command == "toggle":
                _print_task(client.toggle_task(args.task_id))
            elif args.command == "delete":
                task = client.delete_task(args.task_id)
                print(f"Deleted #{task['id']} {task['title']}")
    except SessionExpired:
        print("Session expired, please log in again", file=sys.stderr)
        return 1
    except ApiError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    setup_logging(os.getenv("LOG_LEVEL", "WARNING"))
    sys.exit(main())

import json

import pytest

from client import ApiError, SessionExpired, SessionStore, TaskClient, main


@pytest.fixture()
def store(tmp_path):
    return SessionStore(tmp_path / "session.json")


@pytest.fixture()
def api(client, store):
    return TaskClient("http://testserver", store, http=client)


def test_register_persists_session(api, store):
    user = api.register("alice", "alice@x.com", "pw1")
    assert user["username"] == "alice"
    saved = store.load()
    assert saved["token"] == api.token
    assert saved["user"] == user


def test_restore_revalidates_saved_session(api, client, store):
    api.register("alice", "alice@x.com", "pw1")
    fresh = TaskClient("http://testserver", store, http=client)
    assert fresh.restore()["username"] == "alice"
    assert fresh.authenticated


def test_restore_discards_rejected_token(client, store):
    store.save("not-a-token", {"id": 1, "username": "alice", "email": "alice@x.com"})
    api = TaskClient("http://testserver", store, http=client)
    assert api.restore() is None
    assert not api.authenticated
    assert store.load() is None


def test_restore_without_saved_session(api):
    assert api.restore() is None


def test_task_crud(api):
    api.register("alice", "alice@x.com", "pw1")
    task = api.create_task("buy milk", "2%")
    assert api.list_tasks() == [task]
    assert api.toggle_task(task["id"])["completed"] is True
    assert api.toggle_task(task["id"])["completed"] is False
    assert api.update_task(task["id"], title="buy oat milk")["title"] == "buy oat milk"
    assert api.delete_task(task["id"])["id"] == task["id"]
    with pytest.raises(ApiError) as err:
        api.get_task(task["id"])
    assert err.value.status_code == 404


def test_auth_failure_clears_session(api, store):
    api.register("alice", "alice@x.com", "pw1")
    api.token = api.token + "x"
    with pytest.raises(SessionExpired):
        api.list_tasks()
    assert not api.authenticated
    assert store.load() is None


def test_login_errors_do_not_start_a_session(api, store):
    api.register("alice", "alice@x.com", "pw1")
    api.logout()
    with pytest.raises(ApiError) as err:
        api.login("alice", "wrong")
    assert err.value.status_code == 401
    assert not isinstance(err.value, SessionExpired)
    assert store.load() is None


def test_calls_without_login_raise(api):
    with pytest.raises(SessionExpired):
        api.list_tasks()


def test_cli_flow(client, tmp_path, capsys):
    session = str(tmp_path / "cli.json")
    base = ["--api-url", "http://testserver", "--session-file", session]

    assert main(base + ["register", "alice", "alice@x.com", "pw1"], http=client) == 0
    assert json.loads((tmp_path / "cli.json").read_text())["user"]["username"] == "alice"

    assert main(base + ["add", "buy milk", "2%"], http=client) == 0
    assert main(base + ["list"], http=client) == 0
    assert "[ ] #1 buy milk - 2%" in capsys.readouterr().out

    assert main(base + ["toggle", "1"], http=client) == 0
    assert "[x] #1 buy milk" in capsys.readouterr().out

    assert main(base + ["logout"], http=client) == 0
    assert main(base + ["list"], http=client) == 1

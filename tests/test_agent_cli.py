import pytest

from statuspulse_agent import main as cli
from statuspulse_agent.internal.agent import credentials


@pytest.fixture(autouse=True)
def isolated_state(tmp_path, monkeypatch):
    monkeypatch.setenv("STATUSPULSE_HOME", str(tmp_path))
    monkeypatch.setenv("STATUSPULSE_NO_KEYRING", "1")
    for name in ("STATUSPULSE_TOKEN", "STATUSPULSE_SERVER_URL", "STATUSPULSE_INTERVAL"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


def test_register_status_unregister(capsys):
    assert cli.main(["status"]) == 1
    assert "Not registered" in capsys.readouterr().out

    assert cli.main(["register", "--token", "tok-web-1", "--server", "http://collector:8282/api/metrics"]) == 0
    assert credentials.load_credentials() == {
        "server_url": "http://collector:8282/api/metrics",
        "token": "tok-web-1",
    }

    assert cli.main(["status"]) == 0
    assert "http://collector:8282/api/metrics" in capsys.readouterr().out

    assert cli.main(["unregister"]) == 0
    assert not credentials.is_registered()
    assert cli.main(["status"]) == 1


def test_unregister_without_credentials_is_a_no_op(capsys):
    assert cli.main(["unregister"]) == 0
    assert "No stored credentials" in capsys.readouterr().out


def test_run_without_token_exits_with_config_error():
    assert cli.main(["run"]) == 1


def test_run_rejects_non_positive_interval():
    assert cli.main(["run", "--token", "tok-web-1", "--interval", "0"]) == 1

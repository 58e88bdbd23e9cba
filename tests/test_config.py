import json

from witransfer.config import EXAMPLE_CONFIG, Config, load_config


def test_defaults_match_discovery_protocol():
    config = Config()

    assert config.port == 54321
    assert config.broadcast_address == "255.255.255.255"
    assert config.announce_interval == 2.0
    assert config.read_timeout == 50.0
    assert config.peer_ttl is None
    assert config.reuse_address is False


def test_from_file_reads_known_keys(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"port": 9999, "peer_ttl": 30, "unknown": True}))

    config = Config.from_file(path)

    assert config.port == 9999
    assert config.peer_ttl == 30
    assert not hasattr(config, "unknown")


def test_from_file_missing_gives_defaults(tmp_path):
    assert Config.from_file(tmp_path / "missing.json") == Config()


def test_example_config_is_loadable(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(EXAMPLE_CONFIG)

    assert Config.from_file(path).display_name == "Alice"


def test_save_and_reload(tmp_path):
    path = tmp_path / "config.json"
    config = Config(port=4000, display_name="Bob", peer_ttl=12.5)

    config.save(path)

    assert Config.from_file(path) == config


def test_from_env(monkeypatch):
    monkeypatch.setenv("WITRANSFER_PORT", "6000")
    monkeypatch.setenv("WITRANSFER_ANNOUNCE_INTERVAL", "0.5")
    monkeypatch.setenv("WITRANSFER_PEER_TTL", "20")
    monkeypatch.setenv("WITRANSFER_REUSE_ADDRESS", "yes")
    monkeypatch.setenv("WITRANSFER_NAME", "Carol")

    config = Config.from_env()

    assert config.port == 6000
    assert config.announce_interval == 0.5
    assert config.peer_ttl == 20.0
    assert config.reuse_address is True
    assert config.display_name == "Carol"


def test_env_ttl_zero_disables_expiry(monkeypatch):
    monkeypatch.setenv("WITRANSFER_PEER_TTL", "0")
    assert Config.from_env().peer_ttl is None


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"port": 9999, "broadcast_address": "192.168.1.255"}))
    monkeypatch.setenv("WITRANSFER_PORT", "7000")

    config = load_config(path)

    assert config.port == 7000
    assert config.broadcast_address == "192.168.1.255"

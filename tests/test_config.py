import pytest

from owaf import config
from owaf.config import (
    ConfigError,
    DbConfig,
    LogConfig,
    ProxyConfig,
    ServerConfig,
    load_server_config,
)


def test_parse_rate_limit_hcl():
    hcl_str = """
        proxy "test" {
            host = "example.com"
            target = "http://localhost:8080"
            rate_limit {
                requests = 100
                window_sec = 60
            }
        }
    """
    cfg = ProxyConfig.parse(hcl_str)
    entry = cfg.proxy["test"]
    assert entry.host == "example.com"
    assert entry.rate_limit.requests == 100
    assert entry.rate_limit.window_sec == 60


def test_proxy_without_rate_limit():
    cfg = ProxyConfig.parse('proxy "a" {\nhost = "h"\ntarget = "t"\n}')
    assert cfg.proxy["a"].rate_limit is None
    assert cfg.proxy["a"].target == "t"


def test_proxy_missing_host():
    with pytest.raises(ConfigError):
        ProxyConfig.parse('proxy "a" { target = "t" }')


def test_proxy_load_missing_and_bad(tmp_path):
    assert ProxyConfig.load(tmp_path / "nope.hcl").proxy == {}
    bad = tmp_path / "bad.hcl"
    bad.write_text("proxy {")
    assert ProxyConfig.load(bad).proxy == {}


def test_db_defaults_and_alias():
    db = DbConfig.from_mapping({"database_url": "sqlite::memory:"})
    assert db.url == "sqlite::memory:"
    assert db.pool_size == 10
    assert db.tcp_timeout == 10000
    assert db.connection_timeout == 30000
    assert db.enforce_tls is False


def test_db_rejects_negative():
    with pytest.raises(ConfigError):
        DbConfig.from_mapping({"url": "x", "pool_size": -1})


def test_log_defaults():
    assert LogConfig().stdout is False
    assert LogConfig.from_mapping({}).stdout is True
    assert LogConfig.from_mapping({}).file_name == "app.log"


def test_log_invalid_format():
    with pytest.raises(ConfigError):
        LogConfig(format="xml")


def test_server_requires_sections():
    with pytest.raises(ConfigError):
        ServerConfig.from_mapping({"db": {"url": "x"}})


def test_load_from_file_and_env(tmp_path):
    path = tmp_path / "c.toml"
    path.write_text('[db]\nurl = ""\n[log]\n')
    env = {
        "APP_CONFIG": str(path),
        "APP_LISTEN_ADDR": "127.0.0.1:0",
        "DATABASE_URL": "sqlite::memory:",
    }
    cfg = load_server_config(env)
    assert cfg.listen_addr == "127.0.0.1:0"
    assert cfg.db.url == "sqlite::memory:"
    assert cfg.tls is None


def test_missing_database_url(tmp_path):
    path = tmp_path / "c.toml"
    path.write_text('[db]\nurl = ""\n[log]\n')
    with pytest.raises(ConfigError, match="DATABASE_URL is not set"):
        load_server_config({"APP_CONFIG": str(path)})


def test_init_and_get(tmp_path):
    path = tmp_path / "c.toml"
    path.write_text('[db]\nurl = "sqlite::memory:"\n[log]\n')
    proxy = tmp_path / "p.hcl"
    proxy.write_text('proxy "x" {\nhost = "a.example.com"\ntarget = "http://b"\n}')
    config.init({"APP_CONFIG": str(path), "PROXY_CONFIG": str(proxy)})
    assert config.get().listen_addr == "127.0.0.1:8008"
    assert config.get_proxy().proxy["x"].host == "a.example.com"


def test_log_setup_stdout():
    import logging

    handler = LogConfig(stdout=True, format="json").setup()
    try:
        assert handler in logging.getLogger().handlers
    finally:
        logging.getLogger().removeHandler(handler)
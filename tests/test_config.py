from config import Config, TestConfig, store_connect_args


def test_sqlite_waits_on_locks_for_store_timeout():
    assert store_connect_args("sqlite:///studioslot.db", 7) == {"timeout": 7}


def test_postgres_gets_connect_and_statement_timeouts():
    args = store_connect_args("postgresql://studio@db/studioslot", 5)
    assert args == {"connect_timeout": 5, "options": "-c statement_timeout=5000"}


def test_unknown_driver_gets_no_connect_args():
    assert store_connect_args("mysql://studio@db/studioslot", 5) == {}


def test_engine_options_carry_store_timeout():
    assert Config.SQLALCHEMY_ENGINE_OPTIONS["pool_timeout"] == Config.STORE_TIMEOUT_SECONDS
    assert "timeout" in TestConfig.SQLALCHEMY_ENGINE_OPTIONS["connect_args"]

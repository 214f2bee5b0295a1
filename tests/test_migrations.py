# tests/test_migrations.py
import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from chatline import init_db as init_db_module

ROOT = Path(__file__).resolve().parents[1]


def test_upgrade_creates_schema(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "migrated.db"
    monkeypatch.setenv("ALEMBIC_URL", f"sqlite:///{db_path}")
    config = Config(str(ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(ROOT / "migrations"))

    command.upgrade(config, "head")

    engine = create_engine(f"sqlite:///{db_path}")
    try:
        inspector = inspect(engine)
        assert {"user_account", "message"} <= set(inspector.get_table_names())
        message_columns = {col["name"] for col in inspector.get_columns("message")}
        assert {"sender_id", "receiver_id", "content", "image_data", "is_read", "timestamp"} <= message_columns
    finally:
        engine.dispose()

    command.downgrade(config, "base")
    engine = create_engine(f"sqlite:///{db_path}")
    try:
        assert "message" not in inspect(engine).get_table_names()
    finally:
        engine.dispose()


def test_init_db_creates_tables(mocker, caplog) -> None:
    create_tables = mocker.patch.object(init_db_module, "create_tables")

    with caplog.at_level(logging.INFO, logger="chatline.init_db"):
        init_db_module.init_db()

    create_tables.assert_called_once_with()
    assert "Database initialized." in caplog.text

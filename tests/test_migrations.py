from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

ROOT = Path(__file__).resolve().parents[1]
TABLES = {"original_content", "remix_outputs", "user_preferences", "tags"}


class TestMigrations(unittest.TestCase):
    def test_upgrade_and_downgrade_on_sqlite(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "migrate.db"
            cfg = Config(str(ROOT / "alembic.ini"))
            cfg.set_main_option("script_location", str(ROOT / "alembic"))
            env = {"DATABASE_URL": f"sqlite+aiosqlite:///{path}", "DATABASE_KEY": ""}
            with patch.dict(os.environ, env):
                command.upgrade(cfg, "head")
                engine = create_engine(f"sqlite:///{path}")
                try:
                    inspector = inspect(engine)
                    self.assertTrue(TABLES <= set(inspector.get_table_names()))
                    columns = {c["name"] for c in inspector.get_columns("remix_outputs")}
                    self.assertIn("metadata", columns)
                    uniques = inspector.get_unique_constraints("original_content")
                    self.assertIn(["content_hash"], [u["column_names"] for u in uniques])
                    indexes = {i["name"]: i for i in inspector.get_indexes("user_preferences")}
                    self.assertTrue(indexes["ix_user_preferences_user_id"]["unique"])
                    self.assertIn("uq_user_preferences_anonymous", indexes)
                finally:
                    engine.dispose()

                command.downgrade(cfg, "base")
                engine = create_engine(f"sqlite:///{path}")
                try:
                    self.assertFalse(TABLES & set(inspect(engine).get_table_names()))
                finally:
                    engine.dispose()


if __name__ == "__main__":
    unittest.main()

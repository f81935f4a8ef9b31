from pathlib import Path

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex, CreateTable

from app.database import Base
from app import models  # noqa: F401

MIGRATION_SQL = (Path(__file__).resolve().parents[1] / "migrations" / "001_core.sql").read_text(encoding="utf-8")


def test_every_model_table_exists_in_migrations():
    for table_name in Base.metadata.tables:
        assert f"CREATE TABLE IF NOT EXISTS {table_name}" in MIGRATION_SQL


def test_named_constraints_and_indexes_match_migrations():
    for table in Base.metadata.tables.values():
        for constraint in table.constraints:
            if isinstance(constraint, (CheckConstraint, UniqueConstraint)) and str(constraint.name).startswith(("uq_", "ck_")):
                assert f"CONSTRAINT {constraint.name} " in MIGRATION_SQL, constraint.name
        for index in table.indexes:
            assert index.name in MIGRATION_SQL, index.name


def test_active_pair_index_is_partial_and_unique():
    table = Base.metadata.tables["mutual_match"]
    index = next(i for i in table.indexes if i.name == "uq_mutual_match_active_pair")
    ddl = str(CreateIndex(index).compile(dialect=postgresql.dialect()))
    assert "CREATE UNIQUE INDEX uq_mutual_match_active_pair" in ddl
    assert "WHERE is_active" in ddl


def test_mutual_match_pair_order_is_enforced():
    ddl = str(CreateTable(Base.metadata.tables["mutual_match"]).compile(dialect=postgresql.dialect()))
    assert "CONSTRAINT ck_mutual_match_order CHECK (user_low_id < user_high_id)" in ddl


def test_message_content_is_bounded():
    ddl = str(CreateTable(Base.metadata.tables["message"]).compile(dialect=postgresql.dialect()))
    assert "content VARCHAR(1000) NOT NULL" in ddl

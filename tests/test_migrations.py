"""The initial Alembic revision must build the same tables as the models."""
import importlib.util
from pathlib import Path

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations

from catalog.database import Base, import_models

MIGRATION = Path(__file__).resolve().parents[1] / "alembic" / "versions" / "001_initial_catalog_schema.py"


def load_migration():
    spec = importlib.util.spec_from_file_location("initial_catalog_schema", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_upgrade_matches_model_metadata(tmp_path):
    import_models()
    migration = load_migration()
    engine = sa.create_engine(f"sqlite:///{tmp_path / 'migrated.db'}")

    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            migration.upgrade()

        inspector = sa.inspect(conn)
        assert set(inspector.get_table_names()) == set(Base.metadata.tables)

        for name, table in Base.metadata.tables.items():
            migrated = {c["name"]: c for c in inspector.get_columns(name)}
            assert set(migrated) == set(table.columns.keys()), name
            for column in table.columns:
                if column.primary_key:
                    continue
                assert migrated[column.name]["nullable"] == column.nullable, f"{name}.{column.name}"

        unique = {
            tuple(c["column_names"]) for c in inspector.get_unique_constraints("inventory_records")
        }
        assert ("product_id", "warehouse_id") in unique
        assert ("variation_id", "warehouse_id") in unique

    engine.dispose()


def test_downgrade_drops_everything(tmp_path):
    migration = load_migration()
    engine = sa.create_engine(f"sqlite:///{tmp_path / 'migrated.db'}")

    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            migration.upgrade()
            migration.downgrade()
        assert sa.inspect(conn).get_table_names() == []

    engine.dispose()

from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from eventraffle.db.engine import make_engine
from eventraffle.store import RegistrationStore


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to the requested revision."""
    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def print_tables() -> None:
    """Inspect the configured database and print all table names."""
    engine = make_engine()
    insp = inspect(engine)
    print("Current tables:", ", ".join(sorted(insp.get_table_names())))


def main() -> None:
    """Apply migrations, sync the raffle counter and report the resulting schema."""
    upgrade_db()
    mark = RegistrationStore.from_url().reconcile_high_water_mark()
    print_tables()
    print(f"Raffle high-water mark: {mark}")


if __name__ == "__main__":
    main()

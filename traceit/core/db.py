from datetime import datetime, timezone

from sqlalchemy import insert
from sqlalchemy.dialects import sqlite
from sqlalchemy.schema import CreateColumn, CreateTable

from .backends import Backend, Statement, select_backend
from .errors import BackendError
from .logging import logger
from .models import DEFAULT_FOLDER, DEFAULT_FOLDER_ID, Base, folders, qr_codes

# Both drivers speak SQLite SQL; named binds map straight onto Hrana named args
dialect = sqlite.dialect(paramstyle="named")

# Columns that ALTER TABLE ... ADD COLUMN cannot add (or that every table
# version has had since the first release)
MIGRATION_SKIP = {"id", "title", "created_at", "name"}


def compile_statement(stmt) -> Statement:
    """Compile a SQLAlchemy Core statement into SQL text + named params."""
    compiled = stmt.compile(dialect=dialect)
    return Statement(str(compiled), dict(compiled.params))


def utcnow() -> str:
    # Same layout as SQLite CURRENT_TIMESTAMP, so text order is time order
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")


# -----------------------------------------
# INITIALIZE SCHEMA
# -----------------------------------------
async def create_tables(backend: Backend):
    for table in Base.metadata.sorted_tables:
        ddl = CreateTable(table, if_not_exists=True).compile(dialect=dialect)
        await backend.execute(str(ddl).strip())


# -----------------------------------------
# ADDITIVE MIGRATIONS
# -----------------------------------------
async def add_missing_columns(backend: Backend):
    """
    Tables created by older releases may lack newer columns.
    Try to add each one; "duplicate column" means it is already there.
    """
    for table in (qr_codes, folders):
        for column in table.columns:
            if column.name in MIGRATION_SKIP:
                continue

            column_ddl = str(CreateColumn(column).compile(dialect=dialect)).strip()
            try:
                await backend.execute(f"ALTER TABLE {table.name} ADD COLUMN {column_ddl}")
                logger.info(f"[MIGRATION] Added column {table.name}.{column.name}")
            except BackendError as e:
                if "duplicate column" in str(e).lower():
                    continue
                raise


# -----------------------------------------
# DEFAULT FOLDER
# -----------------------------------------
async def seed_default_folder(backend: Backend):
    stmt = compile_statement(
        insert(folders).values(id=DEFAULT_FOLDER_ID, name=DEFAULT_FOLDER, created_at=utcnow())
    )
    try:
        await backend.execute(stmt.sql, stmt.params)
        logger.info(f"[MIGRATION] Seeded '{DEFAULT_FOLDER}' folder")
    except BackendError as e:
        # another process (or an earlier start) got there first
        if not e.is_unique_violation:
            raise


async def init_schema(backend: Backend):
    """
    Create tables, add missing columns and seed the General folder.
    Safe to run on every start, including concurrent starts.
    """
    await create_tables(backend)
    await add_missing_columns(backend)
    await seed_default_folder(backend)
    logger.info("[MIGRATION] Database schema up-to-date")


async def open_backend(url: str | None = None, auth_token: str | None = None, db_path: str | None = None) -> Backend:
    """Select the configured backend and make sure its schema is current."""
    backend = select_backend(url=url, auth_token=auth_token, db_path=db_path)
    try:
        await init_schema(backend)
    except Exception:
        await backend.close()
        raise
    return backend


async def check_connection(backend: Backend) -> bool:
    """Ping the store. Used for operator diagnostics only."""
    try:
        await backend.execute("SELECT 1")
        logger.info(f"{backend.kind} store reachable")
        return True
    except BackendError as e:
        logger.error(f"{backend.kind} store unreachable: {e}")
        return False

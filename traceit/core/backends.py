"""
Storage drivers behind one async contract.

EmbeddedBackend runs SQLite through SQLAlchemy on a single worker thread, so
statements are awaitable and serialized one at a time without blocking the
event loop. RemoteBackend talks to a libSQL server (Turso) over the Hrana
HTTP pipeline protocol with httpx.

select_backend() picks one of them once, at startup. There is no fallback
from one to the other: a remote that cannot be reached is an error, never a
reason to write to the local file instead.
"""
import asyncio
import base64
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Iterable

import httpx
from sqlalchemy import create_engine, text
from sqlalchemy.exc import DBAPIError

from . import config
from .errors import BackendError
from .logging import logger


@dataclass
class Statement:
    sql: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class ResultSet:
    columns: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)
    rows_affected: int = 0

    def first(self) -> dict[str, Any] | None:
        return self.rows[0] if self.rows else None


def _as_statement(stmt) -> Statement:
    if isinstance(stmt, Statement):
        return stmt
    if isinstance(stmt, str):
        return Statement(stmt)
    sql, params = stmt
    return Statement(sql, dict(params or {}))


class Backend:
    """Common contract for both drivers."""

    kind = "abstract"
    supports_transactions = False

    async def execute(self, sql: str, params: dict[str, Any] | None = None) -> ResultSet:
        raise NotImplementedError

    async def batch(self, statements: Iterable) -> list[ResultSet]:
        """
        Run statements in order. Drivers with transactions override this to
        make the whole batch atomic; here the first failure propagates and
        earlier statements stay applied.
        """
        results = []
        for stmt in map(_as_statement, statements):
            results.append(await self.execute(stmt.sql, stmt.params))
        return results

    async def close(self) -> None:
        pass

    def describe(self) -> dict[str, Any]:
        return {"kind": self.kind, "transactions": self.supports_transactions}


# -----------------------------------------
# Embedded SQLite
# -----------------------------------------
class EmbeddedBackend(Backend):
    kind = "embedded"
    supports_transactions = True

    def __init__(self, db_path: str):
        self.db_path = str(db_path)
        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            future=True,
            # busy timeout covers other processes holding the write lock
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="traceit-sqlite")

    def _run(self, statements: list[Statement]) -> list[ResultSet]:
        try:
            with self.engine.begin() as conn:
                return [self._execute_one(conn, stmt) for stmt in statements]
        except DBAPIError as exc:
            orig = exc.orig
            code = getattr(orig, "sqlite_errorname", None) or type(orig).__name__
            raise BackendError(str(orig), code=code) from exc

    @staticmethod
    def _execute_one(conn, stmt: Statement) -> ResultSet:
        result = conn.execute(text(stmt.sql), stmt.params)
        if result.returns_rows:
            columns = list(result.keys())
            rows = [dict(r) for r in result.mappings()]
            return ResultSet(columns=columns, rows=rows)
        return ResultSet(rows_affected=max(result.rowcount, 0))

    async def _submit(self, statements: list[Statement]) -> list[ResultSet]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._run, statements)

    async def execute(self, sql, params=None):
        results = await self._submit([Statement(sql, dict(params or {}))])
        return results[0]

    async def batch(self, statements):
        return await self._submit([_as_statement(s) for s in statements])

    def _shutdown(self):
        self._executor.shutdown(wait=True)
        self.engine.dispose()

    async def close(self):
        # waiting for queued statements must not block the event loop
        await asyncio.to_thread(self._shutdown)

    def describe(self):
        info = super().describe()
        info["path"] = self.db_path
        return info


# -----------------------------------------
# Remote libSQL (Hrana over HTTP)
# -----------------------------------------
def _http_base_url(url: str) -> str:
    for scheme, replacement in (("libsql://", "https://"), ("wss://", "https://"), ("ws://", "http://")):
        if url.startswith(scheme):
            return replacement + url[len(scheme):]
    return url


def _encode_value(value: Any) -> dict[str, Any]:
    if value is None:
        return {"type": "null"}
    if isinstance(value, bool):
        return {"type": "integer", "value": str(int(value))}
    if isinstance(value, int):
        return {"type": "integer", "value": str(value)}
    if isinstance(value, float):
        return {"type": "float", "value": value}
    if isinstance(value, bytes):
        return {"type": "blob", "base64": base64.b64encode(value).decode()}
    return {"type": "text", "value": str(value)}


def _decode_value(value: dict[str, Any]) -> Any:
    kind = value.get("type")
    if kind == "null":
        return None
    if kind == "integer":
        return int(value["value"])
    if kind == "float":
        return float(value["value"])
    if kind == "blob":
        return base64.b64decode(value["base64"])
    return value.get("value")


def _hrana_stmt(stmt: Statement) -> dict[str, Any]:
    return {
        "sql": stmt.sql,
        "named_args": [
            {"name": f":{name}", "value": _encode_value(value)}
            for name, value in stmt.params.items()
        ],
        "want_rows": True,
    }


def _hrana_error(error: dict[str, Any] | None) -> BackendError:
    error = error or {}
    return BackendError(error.get("message", "remote store error"), code=error.get("code"))


def _result_set(result: dict[str, Any]) -> ResultSet:
    columns = [c.get("name") for c in result.get("cols", [])]
    rows = [
        {col: _decode_value(v) for col, v in zip(columns, row)}
        for row in result.get("rows", [])
    ]
    return ResultSet(
        columns=columns,
        rows=rows,
        rows_affected=int(result.get("affected_row_count") or 0),
    )


class RemoteBackend(Backend):
    kind = "remote"
    supports_transactions = True

    def __init__(
        self,
        url: str,
        auth_token: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ):
        self.url = url
        self._has_token = bool(auth_token)
        # None disables httpx's 5s default: the store decides how long a call takes
        self._client = httpx.AsyncClient(
            base_url=_http_base_url(url),
            headers={"Authorization": f"Bearer {auth_token}"},
            transport=transport,
            timeout=timeout if timeout is not None else config.REMOTE_TIMEOUT,
        )

    async def _pipeline(self, requests: list[dict[str, Any]]) -> list[dict[str, Any]]:
        body = {"requests": requests + [{"type": "close"}]}
        try:
            resp = await self._client.post("/v2/pipeline", json=body)
        except httpx.HTTPError as exc:
            raise BackendError(f"remote store unreachable: {exc}") from exc

        if resp.status_code != 200:
            raise BackendError(f"remote store returned HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            results = resp.json()["results"]
            errors = [res.get("error") for res in results if res.get("type") == "error"]
            responses = [res["response"] for res in results[: len(requests)] if res.get("type") != "error"]
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise BackendError(f"remote store returned an invalid response: {resp.text[:200]}") from exc

        if errors:
            raise _hrana_error(errors[0])
        if len(responses) != len(requests):
            raise BackendError(f"remote store returned an invalid response: {resp.text[:200]}")
        return responses

    async def execute(self, sql, params=None):
        stmt = Statement(sql, dict(params or {}))
        [response] = await self._pipeline([{"type": "execute", "stmt": _hrana_stmt(stmt)}])
        return _result_set(response["result"])

    async def batch(self, statements):
        stmts = [_as_statement(s) for s in statements]

        # BEGIN; each statement only if the previous step succeeded; COMMIT;
        # ROLLBACK unless COMMIT succeeded
        steps = [{"stmt": {"sql": "BEGIN"}}]
        for stmt in stmts:
            steps.append({
                "stmt": _hrana_stmt(stmt),
                "condition": {"type": "ok", "step": len(steps) - 1},
            })
        commit_step = len(steps)
        steps.append({"stmt": {"sql": "COMMIT"}, "condition": {"type": "ok", "step": commit_step - 1}})
        steps.append({
            "stmt": {"sql": "ROLLBACK"},
            "condition": {"type": "not", "cond": {"type": "ok", "step": commit_step}},
        })

        [response] = await self._pipeline([{"type": "batch", "batch": {"steps": steps}}])
        result = response["result"]
        step_results = result.get("step_results", [])
        step_errors = result.get("step_errors", [])

        for error in step_errors[: commit_step + 1]:
            if error:
                raise _hrana_error(error)

        return [_result_set(r or {}) for r in step_results[1:commit_step]]

    async def close(self):
        await self._client.aclose()

    def describe(self):
        info = super().describe()
        info["has_url"] = bool(self.url)
        info["url_preview"] = self.url[:20] + "..."
        info["has_token"] = self._has_token
        return info


# -----------------------------------------
# Selection
# -----------------------------------------
def select_backend(url: str | None = None, auth_token: str | None = None, db_path: str | None = None) -> Backend:
    """
    Remote when both URL and token are configured, embedded otherwise.
    Arguments default to the environment-driven config values.
    """
    url = url if url is not None else config.TURSO_DATABASE_URL
    auth_token = auth_token if auth_token is not None else config.TURSO_AUTH_TOKEN

    if url and auth_token:
        logger.info(f"Using remote store at {url[:20]}...")
        return RemoteBackend(url, auth_token)

    db_path = db_path or config.DB_PATH
    logger.info(f"Using embedded store at {db_path}")
    return EmbeddedBackend(db_path)

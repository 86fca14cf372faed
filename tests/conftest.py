import asyncio
import base64
import json
import os
import sqlite3
import tempfile

import httpx
import pytest

os.environ.setdefault("TRACEIT_LOG_PATH", os.path.join(tempfile.gettempdir(), "traceit-test.log"))

from traceit.core.backends import EmbeddedBackend, RemoteBackend  # noqa: E402
from traceit.core.db import init_schema  # noqa: E402
from traceit.core.repository import FolderRepository, QRCodeRepository  # noqa: E402

REMOTE_URL = "libsql://traceit-test.turso.io"
REMOTE_TOKEN = "test-token"


# -----------------------------
# In-process libSQL stand-in
# -----------------------------
def _to_hrana(value):
    if value is None:
        return {"type": "null"}
    if isinstance(value, int):
        return {"type": "integer", "value": str(value)}
    if isinstance(value, float):
        return {"type": "float", "value": value}
    if isinstance(value, bytes):
        return {"type": "blob", "base64": base64.b64encode(value).decode()}
    return {"type": "text", "value": value}


def _from_hrana(value):
    kind = value["type"]
    if kind == "null":
        return None
    if kind == "integer":
        return int(value["value"])
    if kind == "blob":
        return base64.b64decode(value["base64"])
    return value["value"]


class FakeHranaServer:
    """
    Answers /v2/pipeline requests from an in-memory SQLite database,
    enough of the protocol for RemoteBackend.
    """

    def __init__(self):
        self.conn = sqlite3.connect(":memory:", isolation_level=None, check_same_thread=False)
        self.requests = []

    def _execute(self, stmt):
        args = {a["name"].lstrip(":@$"): _from_hrana(a["value"]) for a in stmt.get("named_args", [])}
        cur = self.conn.execute(stmt["sql"], args)
        cols = [{"name": d[0], "decltype": None} for d in (cur.description or [])]
        rows = [[_to_hrana(v) for v in row] for row in cur.fetchall()]
        return {
            "cols": cols,
            "rows": rows,
            "affected_row_count": max(cur.rowcount, 0) if cur.description is None else 0,
            "last_insert_rowid": None,
        }

    @staticmethod
    def _error(exc):
        return {"message": f"SQLite error: {exc}", "code": getattr(exc, "sqlite_errorname", "SQLITE_ERROR")}

    def _check(self, cond, results, errors):
        kind = cond["type"]
        if kind == "ok":
            return results[cond["step"]] is not None and errors[cond["step"]] is None
        if kind == "error":
            return errors[cond["step"]] is not None
        if kind == "not":
            return not self._check(cond["cond"], results, errors)
        if kind == "and":
            return all(self._check(c, results, errors) for c in cond["conds"])
        if kind == "or":
            return any(self._check(c, results, errors) for c in cond["conds"])
        raise AssertionError(f"unknown condition {kind}")

    def _batch(self, steps):
        results, errors = [], []
        for step in steps:
            cond = step.get("condition")
            if cond and not self._check(cond, results, errors):
                results.append(None)
                errors.append(None)
                continue
            try:
                results.append(self._execute(step["stmt"]))
                errors.append(None)
            except sqlite3.Error as exc:
                results.append(None)
                errors.append(self._error(exc))
        return {"step_results": results, "step_errors": errors}

    def handler(self, request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v2/pipeline"
        if request.headers.get("authorization") != f"Bearer {REMOTE_TOKEN}":
            return httpx.Response(401, text="Unauthorized")

        body = json.loads(request.content)
        self.requests.append(body)
        out = []
        for req in body["requests"]:
            if req["type"] == "close":
                out.append({"type": "ok", "response": {"type": "close"}})
            elif req["type"] == "execute":
                try:
                    out.append({"type": "ok", "response": {"type": "execute", "result": self._execute(req["stmt"])}})
                except sqlite3.Error as exc:
                    out.append({"type": "error", "error": self._error(exc)})
            elif req["type"] == "batch":
                result = self._batch(req["batch"]["steps"])
                out.append({"type": "ok", "response": {"type": "batch", "result": result}})
        return httpx.Response(200, json={"baton": None, "base_url": None, "results": out})


# -----------------------------
# Fixtures
# -----------------------------
@pytest.fixture
def hrana_server():
    return FakeHranaServer()


@pytest.fixture(params=["embedded", "remote"])
def make_backend(request, tmp_path, hrana_server):
    def factory():
        if request.param == "embedded":
            return EmbeddedBackend(str(tmp_path / "traceit.db"))
        return RemoteBackend(REMOTE_URL, REMOTE_TOKEN, transport=httpx.MockTransport(hrana_server.handler))

    return factory


@pytest.fixture
def run_store(make_backend):
    """
    Run `scenario(qr_repo, folder_repo, backend)` against a freshly
    initialized store and return its result.
    """

    def runner(scenario):
        async def main():
            backend = make_backend()
            try:
                await init_schema(backend)
                return await scenario(QRCodeRepository(backend), FolderRepository(backend), backend)
            finally:
                await backend.close()

        return asyncio.run(main())

    return runner

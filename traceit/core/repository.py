from datetime import datetime
from typing import Any

import pydantic
from sqlalchemy import delete, insert, literal_column, select, update

from .backends import Backend
from .codec import BULK_STYLE, encode_json, encode_source_urls
from .crypto import verification_hash
from .db import compile_statement, utcnow
from .errors import (
    BackendError,
    FolderConflictError,
    InvalidFieldError,
    MissingTitleError,
    ProtectedFolderError,
)
from .ids import new_id
from .logging import logger
from .models import DEFAULT_FOLDER, folders, qr_codes
from .schemas import Folder, QRCode, QRCodeCreate, QRCodeUpdate

# Attempts for inserts whose generated id collides with an existing row
ID_ATTEMPTS = 3

rowid = literal_column("rowid")


def _encode_blobs(values: dict[str, Any]) -> dict[str, Any]:
    for key in ("style", "landing_content"):
        if key in values:
            values[key] = encode_json(values[key])
    if "destination_url" in values:
        values["destination_url"] = encode_source_urls(values["destination_url"])
    return values


def _invalid(e: pydantic.ValidationError) -> InvalidFieldError:
    err = e.errors()[0]
    field = ".".join(str(p) for p in err["loc"])
    return InvalidFieldError(f"Invalid value for {field}: {err['msg']}")


class QRCodeRepository:
    def __init__(self, backend: Backend):
        self.backend = backend

    async def _execute(self, stmt):
        compiled = compile_statement(stmt)
        return await self.backend.execute(compiled.sql, compiled.params)

    async def create(self, fields: dict[str, Any]) -> str:
        """
        Insert a new QR code and return its id.
        title is required; type defaults to link and folder to General.
        The folder is stored as given, without checking that it exists.
        """
        if not str(fields.get("title") or "").strip():
            raise MissingTitleError()

        try:
            data = QRCodeCreate.model_validate(fields)
        except pydantic.ValidationError as e:
            raise _invalid(e) from e

        supplied_id = data.id
        attempts = 1 if supplied_id else ID_ATTEMPTS

        for attempt in range(1, attempts + 1):
            qr_id = supplied_id or new_id()
            created_at = utcnow()

            values = _encode_blobs(data.model_dump(exclude={"id"}))
            values.update(id=qr_id, created_at=created_at, scans=0)

            if data.type == "verified_content":
                values["verification_hash"] = data.verification_hash or verification_hash(
                    qr_id, data.title, created_at
                )
            else:
                values["verification_hash"] = None

            try:
                await self._execute(insert(qr_codes).values(**values))
            except BackendError as e:
                if not supplied_id and e.violates("qr_codes", "id") and attempt < attempts:
                    logger.warning(f"QR id collision on {qr_id}, regenerating ({attempt}/{attempts})")
                    continue
                raise

            logger.info(f"Created QR code {qr_id} ({data.type}) in folder '{data.folder}'")
            return qr_id

    async def get(self, qr_id: str) -> QRCode | None:
        result = await self._execute(select(qr_codes).where(qr_codes.c.id == qr_id))
        row = result.first()
        return QRCode.from_row(row) if row else None

    async def list_all(self) -> list[QRCode]:
        """All QR codes, newest first."""
        result = await self._execute(
            select(qr_codes).order_by(qr_codes.c.created_at.desc(), rowid.desc())
        )
        return [QRCode.from_row(r) for r in result.rows]

    async def update(self, qr_id: str, partial: dict[str, Any]) -> bool:
        """
        Apply the allow-listed fields in `partial`; other keys are ignored.
        Returns True if a row matched. An empty update is a no-op.
        """
        try:
            changes = QRCodeUpdate.model_validate(partial).model_dump(exclude_unset=True)
        except pydantic.ValidationError as e:
            raise _invalid(e) from e

        if not changes:
            return True

        if "title" in changes and not str(changes["title"] or "").strip():
            raise MissingTitleError()
        if "folder" in changes and not changes["folder"]:
            changes["folder"] = DEFAULT_FOLDER

        result = await self._execute(
            update(qr_codes).where(qr_codes.c.id == qr_id).values(**_encode_blobs(changes))
        )
        if result.rows_affected == 0:
            logger.info(f"Update of unknown QR code {qr_id} matched nothing")
            return False
        return True

    async def move_to_folder(self, qr_id: str, folder: str) -> bool:
        if not folder or not folder.strip():
            raise InvalidFieldError("Folder name is required")
        return await self.update(qr_id, {"folder": folder})

    async def increment_scan_count(self, qr_id: str) -> None:
        """
        Count one scan. Never raises: a failed increment must not break the
        redirect or landing page that triggered it.
        """
        try:
            result = await self._execute(
                update(qr_codes)
                .where(qr_codes.c.id == qr_id)
                .values(scans=qr_codes.c.scans + 1)
            )
            if result.rows_affected == 0:
                logger.warning(f"Scan for unknown QR code {qr_id} not counted")
        except Exception as e:
            logger.warning(f"Scan increment failed for {qr_id}: {e}", exc_info=True)

    async def bulk_create(self, count: int, folder: str) -> list[str]:
        """
        Create `count` link codes in `folder`, creating the folder if needed.
        Codes are inserted one after another.
        """
        if not isinstance(count, int) or count < 1:
            raise InvalidFieldError("Valid count is required")
        if not folder or not folder.strip():
            raise InvalidFieldError("Folder name is required")

        folder = folder.strip()
        if folder != DEFAULT_FOLDER:
            try:
                await FolderRepository(self.backend).create(folder)
            except FolderConflictError:
                pass

        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        ids = []
        for i in range(count):
            ids.append(await self.create({
                "type": "link",
                "title": f"Bulk QR {stamp} #{i + 1}",
                "destination_url": "",
                "folder": folder,
                "style": dict(BULK_STYLE),
            }))

        logger.info(f"Bulk created {len(ids)} QR codes in '{folder}'")
        return ids


class FolderRepository:
    def __init__(self, backend: Backend):
        self.backend = backend

    async def _execute(self, stmt):
        compiled = compile_statement(stmt)
        return await self.backend.execute(compiled.sql, compiled.params)

    async def create(self, name: str) -> str:
        """
        Insert a folder and return its id. No existence check up front: the
        unique index on name decides, and a violation becomes
        FolderConflictError.
        """
        name = (name or "").strip()
        if not name:
            raise InvalidFieldError("Folder name is required")

        for attempt in range(1, ID_ATTEMPTS + 1):
            folder_id = new_id()
            try:
                await self._execute(
                    insert(folders).values(id=folder_id, name=name, created_at=utcnow())
                )
            except BackendError as e:
                if e.violates("folders", "name"):
                    raise FolderConflictError(name) from e
                if e.violates("folders", "id") and attempt < ID_ATTEMPTS:
                    logger.warning(f"Folder id collision on {folder_id}, regenerating")
                    continue
                raise

            logger.info(f"Created folder '{name}'")
            return folder_id

    async def get(self, name: str) -> Folder | None:
        result = await self._execute(select(folders).where(folders.c.name == name))
        row = result.first()
        return Folder.from_row(row) if row else None

    async def list(self) -> list[Folder]:
        """All folders, oldest first (General comes first)."""
        result = await self._execute(
            select(folders).order_by(folders.c.created_at.asc(), rowid.asc())
        )
        return [Folder.from_row(r) for r in result.rows]

    async def delete(self, name: str) -> bool:
        """
        Delete a folder, moving its QR codes to General first.

        Both steps go through backend.batch(), which is one transaction on
        backends that support it. On a backend without transactions a
        failure of the delete leaves the codes already moved to General while
        the folder row remains; the error still propagates.
        Returns True if a folder row was removed.
        """
        # names are stored stripped by create()
        name = (name or "").strip()
        if name == DEFAULT_FOLDER:
            raise ProtectedFolderError(name)

        steps = [
            compile_statement(
                update(qr_codes).where(qr_codes.c.folder == name).values(folder=DEFAULT_FOLDER)
            ),
            compile_statement(delete(folders).where(folders.c.name == name)),
        ]
        moved, deleted = await self.backend.batch(steps)

        logger.info(f"Deleted folder '{name}', moved {moved.rows_affected} QR codes to {DEFAULT_FOLDER}")
        return deleted.rows_affected > 0

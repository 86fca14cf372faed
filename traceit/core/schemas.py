from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

from .codec import decode_landing_content, decode_source_urls, decode_style
from .models import DEFAULT_FOLDER

QRType = Literal["link", "landing", "verified_content"]


# -----------------------------
# Inputs
# -----------------------------
class QRCodeCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    type: QRType = "link"
    title: str
    destination_url: str | list[str] | None = None
    landing_content: dict[str, Any] | str | None = None
    folder: str = DEFAULT_FOLDER
    custom_domain: str | None = None
    organization: str | None = None
    content_category: str | None = None
    verification_hash: str | None = None
    style: dict[str, Any] | str | None = None

    @field_validator("type", "folder", mode="before")
    @classmethod
    def _blank_means_default(cls, v, info):
        # empty strings and None fall back to the column defaults
        if v is None or v == "":
            return cls.model_fields[info.field_name].default
        return v


class QRCodeUpdate(BaseModel):
    """Only these fields may change after creation; anything else is dropped."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    destination_url: str | list[str] | None = None
    landing_content: dict[str, Any] | str | None = None
    folder: str | None = None
    style: dict[str, Any] | str | None = None
    custom_domain: str | None = None


# -----------------------------
# Records
# -----------------------------
class QRCode(BaseModel):
    id: str
    type: QRType
    title: str
    destination_url: str | None = None
    landing_content: dict[str, Any] | None = None
    folder: str = DEFAULT_FOLDER
    custom_domain: str | None = None
    organization: str | None = None
    content_category: str | None = None
    verification_hash: str | None = None
    style: dict[str, Any] | None = None
    created_at: str
    scans: int = 0

    @classmethod
    def from_row(cls, row: dict) -> "QRCode":
        data = dict(row)
        for key, decode in (("style", decode_style), ("landing_content", decode_landing_content)):
            if data.get(key) is not None:
                data[key] = decode(data[key])
        data["created_at"] = str(data["created_at"])
        data["scans"] = int(data.get("scans") or 0)
        return cls.model_validate(data)

    def resolved_style(self) -> dict:
        """Style to render with, falling back to plain black on white."""
        return self.style if self.style is not None else decode_style(None)

    def source_urls(self) -> list[str]:
        return decode_source_urls(self.destination_url)


class Folder(BaseModel):
    id: str
    name: str
    created_at: str

    @classmethod
    def from_row(cls, row: dict) -> "Folder":
        data = dict(row)
        data["created_at"] = str(data["created_at"])
        return cls.model_validate(data)

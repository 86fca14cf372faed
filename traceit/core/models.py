from sqlalchemy import CheckConstraint, Column, Integer, Text, TIMESTAMP, text
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.sql import func

QR_TYPES = ("link", "landing", "verified_content")
DEFAULT_FOLDER = "General"
DEFAULT_FOLDER_ID = "general"


class Base(DeclarativeBase):
    pass


class QRCodeRow(Base):
    __tablename__ = "qr_codes"

    id = Column(Text, primary_key=True)
    type = Column(Text, nullable=False, server_default=QR_TYPES[0])
    title = Column(Text, nullable=False)
    destination_url = Column(Text)
    landing_content = Column(Text)  # JSON
    folder = Column(Text, nullable=False, server_default=DEFAULT_FOLDER)
    custom_domain = Column(Text)
    organization = Column(Text)
    content_category = Column(Text)
    verification_hash = Column(Text)
    style = Column(Text)  # JSON
    created_at = Column(TIMESTAMP, server_default=func.current_timestamp())
    scans = Column(Integer, nullable=False, server_default=text("0"))

    __table_args__ = (
        CheckConstraint(
            "type IN ('link', 'landing', 'verified_content')",
            name="ck_qr_codes_type",
        ),
    )


class FolderRow(Base):
    __tablename__ = "folders"

    id = Column(Text, primary_key=True)
    name = Column(Text, unique=True, nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.current_timestamp())


qr_codes = QRCodeRow.__table__
folders = FolderRow.__table__

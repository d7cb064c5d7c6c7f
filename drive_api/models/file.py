from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)

from drive_api.db.base import Base


class File(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String, nullable=False)
    size = Column(BigInteger, nullable=False)
    # user-facing locator in the blob store; the blob key is derived from it
    url = Column(String, nullable=False)

    owner_id = Column(String, nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("folders.id"), nullable=False, index=True)

    position = Column(BigInteger, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("size >= 0", name="ck_files_size_non_negative"),
        Index("ix_files_parent_position", "parent_id", "position", "id"),
    )

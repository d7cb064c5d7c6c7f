from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, Integer, String, func

from drive_api.db.base import Base


class Folder(Base):
    __tablename__ = "folders"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)

    owner_id = Column(String, nullable=False, index=True)
    # NULL marks the owner's root folder
    parent_id = Column(Integer, ForeignKey("folders.id"), nullable=True, index=True)

    position = Column(BigInteger, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_folders_parent_position", "parent_id", "position", "id"),
    )

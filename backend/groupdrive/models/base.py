import enum

from sqlalchemy import (
    TIMESTAMP,
    BigInteger,
    Boolean,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from groupdrive.core.database import Base


class UserRole(str, enum.Enum):
    USER = "User"
    ADMIN = "Admin"
    SUPER_ADMIN = "SuperAdmin"


class Permission(str, enum.Enum):
    VIEW = "View"
    EDIT = "Edit"


class ResourceType(str, enum.Enum):
    FILE = "file"
    FOLDER = "folder"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    memberships = relationship("GroupMembership", back_populates="user", foreign_keys="GroupMembership.user_id")

    @property
    def is_admin(self) -> bool:
        return self.role in (UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value)

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN.value

    def to_response_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "created_at": self.created_at,
        }


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id"))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    members = relationship("GroupMembership", back_populates="group")


class GroupMembership(Base):
    __tablename__ = "group_memberships"
    __table_args__ = (UniqueConstraint("user_id", "group_id", name="uq_membership_user_group"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=False)
    permission = Column(String(10), nullable=False, default=Permission.VIEW.value)
    added_by_id = Column(Integer, ForeignKey("users.id"))
    added_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="memberships", foreign_keys=[user_id])
    group = relationship("Group", back_populates="members")


class Folder(Base):
    __tablename__ = "folders"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    # NULL parent_id is a root folder, NULL group_id a personal one
    parent_id = Column(Integer, ForeignKey("folders.id"), nullable=True)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def owner_id(self) -> int:
        return self.created_by_id


class File(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    type = Column(String(255), nullable=False)
    size = Column(BigInteger, nullable=False)
    path = Column(Text, nullable=False)
    parent_id = Column(Integer, ForeignKey("folders.id"), nullable=True)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=True)
    uploaded_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    is_public = Column(Boolean, nullable=False, default=False)
    public_token = Column(String(128))
    uploaded_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def owner_id(self) -> int:
        return self.uploaded_by_id


class FileShare(Base):
    __tablename__ = "file_shares"
    __table_args__ = (UniqueConstraint("file_id", "user_id", name="uq_file_share_user"),)

    id = Column(Integer, primary_key=True)
    file_id = Column(Integer, ForeignKey("files.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    permission = Column(String(10), nullable=False, default=Permission.VIEW.value)
    shared_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    shared_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    user = relationship("User", foreign_keys=[user_id])


class FolderShare(Base):
    __tablename__ = "folder_shares"
    __table_args__ = (UniqueConstraint("folder_id", "user_id", name="uq_folder_share_user"),)

    id = Column(Integer, primary_key=True)
    folder_id = Column(Integer, ForeignKey("folders.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    permission = Column(String(10), nullable=False, default=Permission.VIEW.value)
    shared_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    shared_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    user = relationship("User", foreign_keys=[user_id])


class PublicLink(Base):
    __tablename__ = "public_links"
    __table_args__ = (UniqueConstraint("resource_type", "resource_id", name="uq_public_link_resource"),)

    id = Column(Integer, primary_key=True)
    resource_type = Column(String(10), nullable=False)
    resource_id = Column(Integer, nullable=False)
    token = Column(String(128), nullable=False, unique=True)
    link = Column(Text, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

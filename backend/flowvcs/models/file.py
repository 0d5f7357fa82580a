"""편집기에서 직접 수정하는 라이브 폴더/프로세스 파일(BPMN/DMN) 모델 정의입니다."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from flowvcs.database import Base


class Folder(Base):
    __tablename__ = "folder"

    folder_id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.project_id"), nullable=False)
    parent_folder_id = Column(Integer, ForeignKey("folder.folder_id"), nullable=True)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_folder_project_parent", "project_id", "parent_folder_id"),
    )


class ProcessFile(Base):
    __tablename__ = "process_file"

    file_id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.project_id"), nullable=False)
    folder_id = Column(Integer, ForeignKey("folder.folder_id"), nullable=True)
    name = Column(String(200), nullable=False)
    doc_type = Column(String(10), nullable=False)  # bpmn/dmn
    xml = Column(Text, nullable=False, default="")
    created_by = Column(Integer, ForeignKey("users.user_id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    __table_args__ = (
        Index("idx_process_file_project", "project_id", "folder_id"),
    )

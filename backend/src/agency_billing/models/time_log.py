"""Project and time log models feeding hours usage."""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship

from agency_billing.models.base import Base


class Project(Base):
    """Client project that talent logs time against."""

    __tablename__ = "projects"

    client_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    project_number = Column(String, nullable=False, unique=True)

    # Relationships
    time_logs = relationship("TimeLog", back_populates="project")

    def __repr__(self) -> str:
        """String representation."""
        return f"<Project(id={self.id}, number={self.project_number})>"


class TimeLog(Base):
    """Minutes worked by talent on a client's project."""

    __tablename__ = "time_logs"

    project_id = Column(Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    task_name = Column(String, nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)
    description = Column(String, nullable=True)

    # Relationships
    project = relationship("Project", back_populates="time_logs")

    def __repr__(self) -> str:
        """String representation."""
        return f"<TimeLog(id={self.id}, project_id={self.project_id}, minutes={self.duration_minutes})>"

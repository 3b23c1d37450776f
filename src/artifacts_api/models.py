from sqlalchemy import Column, Integer, String, DateTime, Text

from .database import Base


class ArtifactRecord(Base):
    __tablename__ = "artifact_records"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    url = Column(Text, nullable=False)
    file_type = Column(String(32), nullable=False)
    upload_date_time = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<ArtifactRecord id={self.id} url={self.url!r} file_type={self.file_type!r}>"

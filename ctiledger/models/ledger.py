from sqlalchemy import Column, DateTime, Integer, String, Text, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class LedgerEntry(Base):
    """원장 월드 스테이트 레코드 (key -> JSON value)

    version 컬럼은 SQLAlchemy version_id_col 로 사용되어 UPDATE 시
    `WHERE version = :read_version` 조건이 붙는다. 다른 트랜잭션이 먼저
    갱신했다면 StaleDataError 가 발생한다.
    """

    __tablename__ = "ledger_state"

    key = Column(String(512), primary_key=True)
    doctype = Column(String(64), nullable=True, index=True)
    value = Column(Text, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<LedgerEntry(key={self.key}, doctype={self.doctype}, version={self.version})>"

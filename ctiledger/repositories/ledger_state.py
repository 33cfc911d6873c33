"""원장 상태 어댑터

키-값 월드 스테이트에 대한 get/put/delete, rich query, 북마크 페이지네이션,
트랜잭션 타임스탬프를 제공한다. 서비스 계층은 `LedgerState` 프로토콜에만
의존하며, 기본 구현은 SQLAlchemy 세션 위의 `SqlLedgerState` 이다.

동시성:
- 레코드마다 version 컬럼이 있으며 put_state(expected_version=...) 는
  읽은 버전과 현재 버전이 다르면 VersionConflictError 를 발생시킨다.
- transaction() 블록 안의 쓰기는 하나의 DB 트랜잭션으로 커밋/롤백된다.
  중첩된 transaction() 은 바깥 트랜잭션에 합류한다.
"""

import base64
import binascii
import json
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    List,
    Optional,
    Protocol,
    Tuple,
)

import pytz
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ctiledger.core.exceptions import (
    PersistenceError,
    ValidationError,
    VersionConflictError,
)
from ctiledger.models.ledger import LedgerEntry
from ctiledger.schemas.pagination import QueryPredicate
from ctiledger.utils.selector import equality_value, matches, sort_documents

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerRecord:
    key: str
    value: bytes
    version: int

    def json(self) -> Dict[str, Any]:
        return json.loads(self.value.decode("utf-8"))


class LedgerState(Protocol):
    """서비스가 의존하는 원장 상태 인터페이스"""

    def get_state(self, key: str) -> Optional[bytes]: ...

    def get_versioned(self, key: str) -> Optional[LedgerRecord]: ...

    def put_state(
        self, key: str, value: bytes, expected_version: Optional[int] = None
    ) -> int: ...

    def delete_state(self, key: str) -> None: ...

    def query(self, predicate: QueryPredicate) -> Iterator[LedgerRecord]: ...

    def query_paged(
        self, predicate: QueryPredicate, page_size: int, bookmark: str = ""
    ) -> Tuple[List[LedgerRecord], str, int]: ...

    def tx_timestamp(self) -> datetime: ...

    def tx_id(self) -> str: ...

    def transaction(self): ...


def encode_bookmark(payload: Dict[str, Any]) -> str:
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_bookmark(bookmark: str) -> Dict[str, Any]:
    try:
        payload = json.loads(base64.urlsafe_b64decode(bookmark.encode("ascii")))
    except (binascii.Error, ValueError, UnicodeEncodeError) as e:
        raise ValidationError(f"Invalid bookmark: {bookmark}", details={"error": str(e)})
    if not isinstance(payload, dict):
        raise ValidationError(f"Invalid bookmark: {bookmark}")
    return payload


def extract_doctype(value: bytes) -> Optional[str]:
    try:
        data = json.loads(value.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None
    if isinstance(data, dict) and isinstance(data.get("doctype"), str):
        return data["doctype"]
    return None


class SqlLedgerState:
    """SQLAlchemy 세션 기반 LedgerState 구현"""

    def __init__(
        self,
        db: Session,
        timezone: str = "UTC",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.tz = pytz.timezone(timezone)
        self._clock = clock
        self._depth = 0
        self._tx_timestamp: Optional[datetime] = None
        self._tx_id: Optional[str] = None

    # ------------------------------------------------------------------
    # 트랜잭션 컨텍스트
    # ------------------------------------------------------------------
    def _now(self) -> datetime:
        if self._clock is not None:
            now = self._clock()
            if now.tzinfo is None:
                return self.tz.localize(now)
            return now.astimezone(self.tz)
        return datetime.now(self.tz)

    def tx_timestamp(self) -> datetime:
        """현재 트랜잭션 시작 시각 (트랜잭션 밖에서는 현재 시각)"""
        return self._tx_timestamp or self._now()

    def tx_id(self) -> str:
        return self._tx_id or uuid.uuid4().hex

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self):
        outermost = self._depth == 0
        if outermost:
            self._tx_timestamp = self._now()
            self._tx_id = uuid.uuid4().hex
        self._depth += 1
        try:
            yield self
            if outermost:
                self._commit()
        except Exception:
            if outermost:
                self.db.rollback()
            raise
        finally:
            self._depth -= 1
            if outermost:
                self._tx_timestamp = None
                self._tx_id = None

    def _commit(self) -> None:
        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            raise VersionConflictError(key="<commit>") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Ledger commit failed: {str(e)}")
            raise PersistenceError("Failed to commit ledger transaction", details={"error": str(e)})

    def _flush(self, key: str) -> None:
        try:
            self.db.flush()
        except StaleDataError as e:
            self.db.rollback()
            raise VersionConflictError(key=key) from e
        except IntegrityError as e:
            # 동시에 같은 키가 insert 된 경우
            self.db.rollback()
            raise VersionConflictError(key=key, expected_version=0) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Ledger write failed for key {key}: {str(e)}")
            raise PersistenceError(f"Failed to write ledger key {key}", details={"error": str(e)})

        if self._depth == 0:
            self._commit()

    # ------------------------------------------------------------------
    # 단건 연산
    # ------------------------------------------------------------------
    def _load(self, key: str) -> Optional[LedgerEntry]:
        try:
            return self.db.get(LedgerEntry, key, populate_existing=True)
        except SQLAlchemyError as e:
            logger.error(f"Ledger read failed for key {key}: {str(e)}")
            raise PersistenceError(f"Failed to read ledger key {key}", details={"error": str(e)})

    def get_versioned(self, key: str) -> Optional[LedgerRecord]:
        entry = self._load(key)
        if entry is None:
            return None
        return LedgerRecord(key=entry.key, value=entry.value.encode("utf-8"), version=entry.version)

    def get_state(self, key: str) -> Optional[bytes]:
        record = self.get_versioned(key)
        return record.value if record else None

    def put_state(
        self, key: str, value: bytes, expected_version: Optional[int] = None
    ) -> int:
        """레코드 저장

        Args:
            key: 원장 키
            value: JSON 바이트
            expected_version: None 이면 무조건 덮어쓰기, 0 이면 신규 생성만 허용,
                그 외에는 읽은 버전과 일치할 때만 갱신

        Returns:
            int: 저장 후 버전
        """
        if not key:
            raise ValidationError("Ledger key must not be empty")

        entry = self._load(key)
        current_version = entry.version if entry is not None else 0
        if expected_version is not None and expected_version != current_version:
            raise VersionConflictError(
                key=key,
                expected_version=expected_version,
                actual_version=current_version,
            )

        text = value.decode("utf-8")
        doctype = extract_doctype(value)
        if entry is None:
            entry = LedgerEntry(key=key, doctype=doctype, value=text)
            self.db.add(entry)
        else:
            entry.value = text
            if doctype is not None:
                entry.doctype = doctype

        self._flush(key)
        return entry.version

    def delete_state(self, key: str) -> None:
        entry = self._load(key)
        if entry is None:
            return
        self.db.delete(entry)
        self._flush(key)

    # ------------------------------------------------------------------
    # Rich query
    # ------------------------------------------------------------------
    def _candidates(self, predicate: QueryPredicate, after_key: Optional[str] = None):
        stmt = select(LedgerEntry).order_by(LedgerEntry.key)
        doctype = equality_value(predicate.selector, "doctype")
        if isinstance(doctype, str):
            stmt = stmt.where(LedgerEntry.doctype == doctype)
        if after_key is not None:
            stmt = stmt.where(LedgerEntry.key > after_key)
        try:
            return self.db.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Ledger query failed: {str(e)}")
            raise PersistenceError("Failed to query ledger", details={"error": str(e)})

    def _matching(self, predicate: QueryPredicate, after_key: Optional[str] = None):
        for entry in self._candidates(predicate, after_key):
            try:
                document = json.loads(entry.value)
            except ValueError:
                continue
            if isinstance(document, dict) and matches(document, predicate.selector):
                yield entry, document

    def query(self, predicate: QueryPredicate) -> Iterator[LedgerRecord]:
        """selector 에 맞는 레코드를 순회 (sort/limit 적용)"""
        rows = list(self._matching(predicate))
        if predicate.sort:
            keyed = sort_documents([(e.key, d) for e, d in rows], predicate.sort)
            order = {key: i for i, (key, _) in enumerate(keyed)}
            rows.sort(key=lambda row: order[row[0].key])
        if predicate.limit is not None:
            rows = rows[: predicate.limit]
        for entry, _ in rows:
            yield LedgerRecord(key=entry.key, value=entry.value.encode("utf-8"), version=entry.version)

    def query_paged(
        self, predicate: QueryPredicate, page_size: int, bookmark: str = ""
    ) -> Tuple[List[LedgerRecord], str, int]:
        """네이티브 커서 페이지네이션

        정렬이 없으면 마지막 키 이후부터 이어서 조회하고, 정렬이 있으면 정렬된
        결과에서의 오프셋을 북마크에 담는다.

        Returns:
            (records, next_bookmark, fetched_count) - 더 없으면 next_bookmark 는 ""
        """
        if page_size < 1:
            raise ValidationError("page_size must be >= 1")
        cursor = decode_bookmark(bookmark) if bookmark else {}

        if predicate.sort:
            offset = int(cursor.get("o", 0))
            rows = list(self.query(predicate.model_copy(update={"limit": None})))
            page = rows[offset: offset + page_size]
            has_more = offset + page_size < len(rows)
            next_bookmark = encode_bookmark({"o": offset + page_size}) if has_more else ""
            return page, next_bookmark, len(page)

        records: List[LedgerRecord] = []
        has_more = False
        for entry, _ in self._matching(predicate, after_key=cursor.get("k")):
            if len(records) == page_size:
                has_more = True
                break
            records.append(
                LedgerRecord(key=entry.key, value=entry.value.encode("utf-8"), version=entry.version)
            )
        next_bookmark = encode_bookmark({"k": records[-1].key}) if has_more else ""
        return records, next_bookmark, len(records)

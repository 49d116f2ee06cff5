"""
Cross-reference linker between two synced entity families.

For every right-hand record (e.g. a college) the first list-valued token field
(e.g. "courses") is read, and each token is matched against left-hand records
(e.g. courses) by case-sensitive substring on the record id or a name field.
The first left record that matches wins.

This is best-effort, not authoritative: substring matching links "Welding"
to "Advanced Welding" and misses "welding". A token with no match is a normal
outcome and is not reported as an error.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import LinkError
from ingestion.registry import LinkRule
from ingestion.store import DatasetStore, dialect_insert
from models.association import RecordAssociation
from models.dataset_record import DatasetRecord
from realtime.feed import ChangeFeedRegistry, ChangeType, emit
from schemas.sync import LinkReport, LinkRuleResult
import logging

logger = logging.getLogger(__name__)

ASSOCIATION_RESOURCE = "record_associations"


def _tokens(payload: Dict[str, Any], token_fields: List[str]) -> List[str]:
    for field_name in token_fields:
        value = payload.get(field_name)
        if isinstance(value, list):
            return [token for token in value if isinstance(token, str) and token]
    return []


def find_match(token: str, candidates: List[DatasetRecord], name_fields: List[str]) -> Optional[DatasetRecord]:
    """First candidate whose record_id or a name field contains token"""
    for candidate in candidates:
        if token in candidate.record_id:
            return candidate
        payload = candidate.payload or {}
        for field_name in name_fields:
            name = payload.get(field_name)
            if isinstance(name, str) and token in name:
                return candidate
    return None


class CrossReferenceLinker:
    def __init__(
        self,
        db_session: AsyncSession,
        rules: List[LinkRule],
        feed: Optional[ChangeFeedRegistry] = None
    ):
        self.db = db_session
        self.rules = list(rules)
        self.store = DatasetStore(db_session)
        self.feed = feed

    async def link_all(self) -> LinkReport:
        report = LinkReport()
        for rule in self.rules:
            report.rules.append(await self.link(rule))

        report.total_matched = sum(r.matched for r in report.rules)
        report.total_inserted = sum(r.inserted for r in report.rules)
        logger.info(
            f"Linker finished: {report.total_matched} matches, "
            f"{report.total_inserted} new associations"
        )
        return report

    async def link(self, rule: LinkRule) -> LinkRuleResult:
        result = LinkRuleResult(left_store=rule.left_store, right_store=rule.right_store)

        try:
            left_records = await self.store.latest_records(rule.left_store)
            right_records = await self.store.latest_records(rule.right_store)
        except SQLAlchemyError as e:
            raise LinkError(
                "Failed to read records for linking",
                context={"left_store": rule.left_store, "right_store": rule.right_store},
                original_exception=e
            )

        if not left_records or not right_records:
            logger.info(f"Nothing to link between {rule.left_store} and {rule.right_store}")
            return result

        for right in right_records:
            result.examined += 1
            for token in _tokens(right.payload or {}, rule.token_fields):
                left = find_match(token, left_records, rule.left_name_fields)
                if left is None:
                    continue
                result.matched += 1
                if await self._associate(rule, left.record_id, right.record_id):
                    result.inserted += 1

        logger.info(
            f"{rule.left_store} <-> {rule.right_store}: examined {result.examined}, "
            f"matched {result.matched}, inserted {result.inserted}"
        )
        return result

    async def _associate(self, rule: LinkRule, left_id: str, right_id: str) -> bool:
        values = {
            "left_store": rule.left_store,
            "left_id": left_id,
            "right_store": rule.right_store,
            "right_id": right_id,
            "available": True,
            "created_at": datetime.utcnow(),
        }
        stmt = dialect_insert(self.db)(RecordAssociation).values(**values).on_conflict_do_nothing(
            index_elements=["left_store", "left_id", "right_store", "right_id"]
        )

        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Association {left_id} <-> {right_id} not stored: {e}")
            return False

        if result.rowcount == 0:
            return False

        emit(self.feed, ASSOCIATION_RESOURCE, ChangeType.INSERT, new={
            k: v.isoformat() if isinstance(v, datetime) else v for k, v in values.items()
        })
        return True

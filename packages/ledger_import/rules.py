"""Rule-based categorization and category rule management.

Classification runs against a ``RuleSnapshot``: an immutable tuple of the
household's active rules sorted by ``(priority, name, id)`` and taken once per
import. Priority edits made while an import is running only apply to the next
snapshot.

Evaluation is first-match-wins. The configured field (description or merchant)
is case-folded unless the rule is case sensitive; ``regex`` rules are compiled
once when the snapshot is built and a pattern that does not compile is logged
and left out of the snapshot.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TypeAlias

from db.models.ledger import Account, Category, CategoryRule
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.orm import Session

from .errors import (
    AccountNotFoundError,
    CategoryNotFoundError,
    InvalidRuleError,
    RuleNotFoundError,
)
from .logging_setup import get_logger
from .models import RuleInput, RuleUpdate

logger = get_logger("ledger_import.rules")


@dataclass(frozen=True, slots=True)
class RuleSpec:
    """Read-only view of one ``category_rules`` row used during classification."""

    id: str
    name: str
    priority: int
    match_type: str
    match_field: str
    match_value: str
    case_sensitive: bool
    category_id: str
    account_id: str | None = None
    transaction_type: str | None = None
    pattern: re.Pattern[str] | None = None

    @classmethod
    def from_row(cls, row: CategoryRule) -> RuleSpec:
        pattern = None
        if row.match_type == "regex":
            pattern = compile_rule_pattern(row.match_value, case_sensitive=row.case_sensitive)
        return cls(
            id=row.id,
            name=row.name,
            priority=row.priority,
            match_type=row.match_type,
            match_field=row.match_field,
            match_value=row.match_value,
            case_sensitive=row.case_sensitive,
            category_id=row.category_id,
            account_id=row.account_id,
            transaction_type=row.transaction_type,
            pattern=pattern,
        )


RuleSnapshot: TypeAlias = tuple[RuleSpec, ...]


def compile_rule_pattern(pattern: str, *, case_sensitive: bool) -> re.Pattern[str]:
    """Compile a regex rule pattern; raises ``re.error`` when invalid."""

    return re.compile(pattern, 0 if case_sensitive else re.IGNORECASE)


def sort_rules(rules: Iterable[RuleSpec]) -> RuleSnapshot:
    return tuple(sorted(rules, key=lambda r: (r.priority, r.name, r.id)))


def load_rule_snapshot(
    session: Session,
    *,
    household_id: str,
    account_id: str | None = None,
) -> RuleSnapshot:
    """Return the household's active rules in evaluation order.

    When ``account_id`` is given, rules restricted to other accounts are left
    out. Rules whose regex does not compile are logged and skipped.
    """

    stmt = select(CategoryRule).where(
        CategoryRule.household_id == household_id,
        CategoryRule.is_active.is_(True),
    )
    if account_id is not None:
        stmt = stmt.where(
            or_(CategoryRule.account_id.is_(None), CategoryRule.account_id == account_id)
        )

    specs: list[RuleSpec] = []
    for row in session.scalars(stmt):
        try:
            specs.append(RuleSpec.from_row(row))
        except re.error as exc:
            logger.warning(
                "skipping rule %s (%r): invalid regex %r: %s",
                row.id,
                row.name,
                row.match_value,
                exc,
            )
    return sort_rules(specs)


def match_rule(rule: RuleSpec, value: str | None) -> bool:
    """Evaluate one rule's predicate against a field value."""

    if not value:
        return False
    if rule.match_type == "regex":
        pattern = rule.pattern
        if pattern is None:
            try:
                pattern = compile_rule_pattern(rule.match_value, case_sensitive=rule.case_sensitive)
            except re.error as exc:
                logger.warning("rule %s has an invalid regex %r: %s", rule.id, rule.match_value, exc)
                return False
        return pattern.search(value) is not None

    haystack = value if rule.case_sensitive else value.casefold()
    needle = rule.match_value if rule.case_sensitive else rule.match_value.casefold()
    match rule.match_type:
        case "contains":
            return needle in haystack
        case "starts_with":
            return haystack.startswith(needle)
        case "ends_with":
            return haystack.endswith(needle)
        case "exact":
            return haystack == needle
    logger.warning("rule %s has unknown match type %r", rule.id, rule.match_type)
    return False


def classify(
    snapshot: RuleSnapshot,
    *,
    description: str | None,
    merchant: str | None = None,
    transaction_type: str | None = None,
    account_id: str | None = None,
) -> RuleSpec | None:
    """Return the first rule in ``snapshot`` that matches, or ``None``."""

    for rule in snapshot:
        if rule.account_id is not None and rule.account_id != account_id:
            continue
        if rule.transaction_type is not None and rule.transaction_type != transaction_type:
            continue
        value = merchant if rule.match_field == "merchant" else description
        if match_rule(rule, value):
            return rule
    return None


def record_rule_match(session: Session, rule_id: str) -> None:
    """Increment a rule's usage counter and stamp ``last_matched_at`` (commit at caller)."""

    now = func.now()
    session.execute(
        update(CategoryRule)
        .where(CategoryRule.id == rule_id)
        .values(
            match_count=CategoryRule.match_count + 1,
            last_matched_at=now,
        )
    )


# ---------------------------------------------------------------------------
# Management
# ---------------------------------------------------------------------------


def _check_references(
    session: Session,
    *,
    household_id: str,
    category_id: str | None,
    account_id: str | None,
) -> None:
    if category_id is not None:
        found = session.scalar(
            select(Category.id).where(
                Category.id == category_id, Category.household_id == household_id
            )
        )
        if found is None:
            raise CategoryNotFoundError(f"category {category_id} not found")
    if account_id is not None:
        found = session.scalar(
            select(Account.id).where(Account.id == account_id, Account.household_id == household_id)
        )
        if found is None:
            raise AccountNotFoundError(f"account {account_id} not found")


def _check_pattern(match_type: str, match_value: str, case_sensitive: bool) -> None:
    if match_type != "regex":
        return
    try:
        compile_rule_pattern(match_value, case_sensitive=case_sensitive)
    except re.error as exc:
        raise InvalidRuleError(f"invalid regex pattern {match_value!r}: {exc}") from exc


def _get_rule(session: Session, *, household_id: str, rule_id: str) -> CategoryRule:
    row = session.scalar(
        select(CategoryRule).where(
            CategoryRule.id == rule_id, CategoryRule.household_id == household_id
        )
    )
    if row is None:
        raise RuleNotFoundError(f"rule {rule_id} not found")
    return row


def create_rule(session: Session, *, household_id: str, rule: RuleInput) -> CategoryRule:
    """Validate and insert a new rule (flush only; commit at caller)."""

    _check_pattern(rule.match_type, rule.match_value, rule.case_sensitive)
    _check_references(
        session,
        household_id=household_id,
        category_id=rule.category_id,
        account_id=rule.account_id,
    )
    row = CategoryRule(household_id=household_id, **rule.model_dump())
    session.add(row)
    session.flush()
    logger.info("created rule %s (%r) priority=%d", row.id, row.name, row.priority)
    return row


def update_rule(
    session: Session,
    *,
    household_id: str,
    rule_id: str,
    changes: RuleUpdate,
) -> CategoryRule:
    """Apply the explicitly provided fields of ``changes`` to a rule."""

    row = _get_rule(session, household_id=household_id, rule_id=rule_id)
    values = changes.model_dump(include=changes.model_fields_set)

    for required in (
        "name",
        "match_type",
        "match_field",
        "match_value",
        "case_sensitive",
        "category_id",
        "priority",
        "is_active",
    ):
        if required in values and values[required] is None:
            raise InvalidRuleError(f"{required} cannot be cleared")

    _check_pattern(
        values.get("match_type", row.match_type),
        values.get("match_value", row.match_value),
        values.get("case_sensitive", row.case_sensitive),
    )
    _check_references(
        session,
        household_id=household_id,
        category_id=values.get("category_id"),
        account_id=values.get("account_id"),
    )
    for key, value in values.items():
        setattr(row, key, value)
    row.updated_at = func.now()
    session.flush()
    logger.info("updated rule %s fields=%s", row.id, sorted(values))
    return row


def delete_rule(session: Session, *, household_id: str, rule_id: str) -> None:
    _get_rule(session, household_id=household_id, rule_id=rule_id)
    session.execute(delete(CategoryRule).where(CategoryRule.id == rule_id))
    logger.info("deleted rule %s", rule_id)


__all__ = [
    "RuleSpec",
    "RuleSnapshot",
    "compile_rule_pattern",
    "sort_rules",
    "load_rule_snapshot",
    "match_rule",
    "classify",
    "record_rule_match",
    "create_rule",
    "update_rule",
    "delete_rule",
]

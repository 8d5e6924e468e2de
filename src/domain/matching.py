from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Iterable, Sequence

from .records import Holding, LedgerTransaction, PurchaseRecord, TransactionId, TransactionKind

logger = logging.getLogger(__name__)

MatchPredicate = Callable[[PurchaseRecord, LedgerTransaction], bool]

DEFAULT_AMOUNT_TOLERANCE = Decimal("1")
DEFAULT_QUANTITY_TOLERANCE = Decimal("1e-9")


@dataclass(frozen=True)
class MatchRule:
    name: str
    predicate: MatchPredicate
    weight: int


@dataclass(frozen=True)
class MatchPolicy:
    """Weighted rules deciding how plausibly a ledger entry describes a purchase.

    Candidates scoring below ``min_score`` are dropped; equal scores keep the
    order in which candidates were supplied.
    """

    rules: tuple[MatchRule, ...]
    candidate_kinds: frozenset[TransactionKind] = frozenset({TransactionKind.INVESTMENT})
    min_score: int = 1


@dataclass(frozen=True)
class ScoredCandidate:
    transaction: LedgerTransaction
    score: int
    position: int
    matched_rules: tuple[str, ...] = field(default_factory=tuple)


def same_date(purchase: PurchaseRecord, tx: LedgerTransaction) -> bool:
    return purchase.date is not None and tx.date is not None and purchase.date == tx.date


def amount_within(tolerance: Decimal) -> MatchPredicate:
    def predicate(purchase: PurchaseRecord, tx: LedgerTransaction) -> bool:
        return abs(tx.amount - purchase.invested) < tolerance

    return predicate


def quantity_within(tolerance: Decimal) -> MatchPredicate:
    def predicate(purchase: PurchaseRecord, tx: LedgerTransaction) -> bool:
        return abs(tx.unit_quantity - purchase.quantity) < tolerance

    return predicate


def has_note(purchase: PurchaseRecord, tx: LedgerTransaction) -> bool:
    return tx.has_note


def default_match_policy(
    *,
    amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
    quantity_tolerance: Decimal = DEFAULT_QUANTITY_TOLERANCE,
) -> MatchPolicy:
    return MatchPolicy(
        rules=(
            MatchRule("same_date", same_date, 3),
            MatchRule("invested_amount", amount_within(amount_tolerance), 4),
            MatchRule("unit_quantity", quantity_within(quantity_tolerance), 2),
            MatchRule("has_note", has_note, 1),
        )
    )


class TransactionMatcher:
    """Best-effort association of purchase records with the ledger entries that created them."""

    def __init__(self, policy: MatchPolicy | None = None) -> None:
        self._policy = policy or default_match_policy()

    @property
    def policy(self) -> MatchPolicy:
        return self._policy

    def score(self, purchase: PurchaseRecord, candidate: LedgerTransaction) -> int:
        return self._evaluate(purchase, candidate, position=0).score

    def rank(self, purchase: PurchaseRecord, candidates: Iterable[LedgerTransaction]) -> list[ScoredCandidate]:
        scored = [
            self._evaluate(purchase, candidate, position=idx)
            for idx, candidate in enumerate(candidates)
            if candidate.kind in self._policy.candidate_kinds
        ]
        kept = [entry for entry in scored if entry.score >= self._policy.min_score]
        # sort() is stable, so equal scores stay in supply order.
        kept.sort(key=lambda entry: entry.score, reverse=True)
        return kept

    def match(self, purchase: PurchaseRecord, candidates: Iterable[LedgerTransaction]) -> LedgerTransaction | None:
        ranked = self.rank(purchase, candidates)
        if not ranked:
            return None
        return ranked[0].transaction

    def describe(
        self,
        purchase: PurchaseRecord,
        candidates: Iterable[LedgerTransaction],
        *,
        holding: Holding | None = None,
    ) -> str:
        matched = self.match(purchase, candidates)
        if matched is not None and matched.has_note:
            return matched.note or ""
        for fallback in (purchase.note, holding.note if holding is not None else None):
            if fallback and fallback.strip():
                return fallback
        return ""

    def find_shared_matches(
        self,
        purchases: Iterable[PurchaseRecord],
        candidates: Sequence[LedgerTransaction],
    ) -> dict[TransactionId, list[PurchaseRecord]]:
        """Ledger entries claimed as best match by more than one purchase.

        Shared claims are allowed; this only reports them.
        """
        claims: dict[TransactionId, list[PurchaseRecord]] = defaultdict(list)
        for purchase in purchases:
            matched = self.match(purchase, candidates)
            if matched is not None:
                claims[matched.id].append(purchase)
        return {tx_id: claimed for tx_id, claimed in claims.items() if len(claimed) > 1}

    def _evaluate(self, purchase: PurchaseRecord, candidate: LedgerTransaction, *, position: int) -> ScoredCandidate:
        total = 0
        matched: list[str] = []
        for rule in self._policy.rules:
            if self._rule_holds(rule, purchase, candidate):
                total += rule.weight
                matched.append(rule.name)
        return ScoredCandidate(transaction=candidate, score=total, position=position, matched_rules=tuple(matched))

    @staticmethod
    def _rule_holds(rule: MatchRule, purchase: PurchaseRecord, candidate: LedgerTransaction) -> bool:
        try:
            return bool(rule.predicate(purchase, candidate))
        except Exception:
            logger.warning("Match rule %s failed for transaction %s", rule.name, candidate.id, exc_info=True)
            return False


__all__ = [
    "MatchPolicy",
    "MatchPredicate",
    "MatchRule",
    "ScoredCandidate",
    "TransactionMatcher",
    "amount_within",
    "default_match_policy",
    "has_note",
    "quantity_within",
    "same_date",
]

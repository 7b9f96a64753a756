"""
Price Book Service - lifecycle transitions and price lookups for Price Books.

Draft → Active → Expired → Archived (Active can also be archived directly).
Activation expires every overlapping Active book for the same
(market, channel, currency) inside one store transaction, so at most one
Active book per context covers any given day.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..config.log import get_logger
from ..engine.audit import AuditSink, InMemoryAuditSink
from ..engine.enums import PriceBookStatus, PriceSource
from ..engine.models import Approver, PriceBook, PriceBookEntry
from ..engine.money import to_money, to_utc, utcnow
from ..engine.store import CommercialStore, new_id
from ..exceptions import InvalidTransitionError

logger = get_logger(__name__)

CLONE_FIELDS = ('name', 'market', 'channel_id', 'currency', 'valid_from', 'valid_to')


def _as_date(at) -> date:
    if at is None:
        return utcnow().date()
    if isinstance(at, datetime):
        return to_utc(at).date()
    return at


def _window_reason(valid_from: date, valid_to: date) -> str:
    return f"valid_to {valid_to.isoformat()} is before valid_from {valid_from.isoformat()}"


class PriceBookService:
    """State machine and lookups over the store's Price Books."""

    def __init__(self, store: CommercialStore, audit: Optional[AuditSink] = None):
        self.store = store
        self.audit = audit or InMemoryAuditSink()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def activate(self, book: PriceBook, approver: Approver) -> PriceBook:
        """
        Activate a Draft book, expiring overlapping Active books first.

        Raises:
            InvalidTransitionError: book not Draft, has no entries, an
                inverted validity window, or the approver lacks approval rights
        """
        reasons = []
        if not book.is_draft():
            reasons.append(f"current status '{book.status.label}' is not Draft")
        if not book.has_entries():
            reasons.append("it must have at least one price entry")
        if not book.has_valid_window():
            reasons.append(_window_reason(book.valid_from, book.valid_to))
        if not approver.can_approve_price_books:
            reasons.append(f"approver '{approver.id}' does not have approval permissions")
        if reasons:
            raise InvalidTransitionError("Cannot activate PriceBook", reasons)

        with self.store.transaction():
            for other in self.find_overlapping_active(book):
                self.expire(other)

            old_status = book.status
            book.status = PriceBookStatus.ACTIVE
            book.approved_at = utcnow()
            book.approved_by = approver.id
            self._log_transition(book, old_status, actor=approver.id)

        return book

    def archive(self, book: PriceBook) -> PriceBook:
        if not book.can_be_archived():
            raise InvalidTransitionError(
                "Cannot archive PriceBook",
                [f"current status '{book.status.label}' does not allow archiving; only Active or Expired books can be archived"],
            )
        old_status = book.status
        book.status = PriceBookStatus.ARCHIVED
        self._log_transition(book, old_status)
        return book

    def expire(self, book: PriceBook) -> PriceBook:
        if not book.is_active():
            raise InvalidTransitionError(
                "Cannot expire PriceBook",
                [f"current status '{book.status.label}' is not Active"],
            )
        old_status = book.status
        book.status = PriceBookStatus.EXPIRED
        self._log_transition(book, old_status)
        return book

    def clone_to_new(self, source: PriceBook, overrides: Optional[dict] = None) -> PriceBook:
        """
        Copy a book and all its entries into a new Draft.

        Cloned entries are manual and lose their policy reference. Without an
        override ``valid_from`` starts today.
        """
        overrides = dict(overrides or {})
        unknown = set(overrides) - set(CLONE_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported clone overrides: {', '.join(sorted(unknown))}")

        valid_from = _as_date(overrides.get('valid_from'))
        valid_to = overrides['valid_to'] if 'valid_to' in overrides else source.valid_to
        if valid_to is not None:
            valid_to = _as_date(valid_to)
        if valid_to is not None and valid_to < valid_from:
            raise InvalidTransitionError("Cannot clone PriceBook", [_window_reason(valid_from, valid_to)])

        with self.store.transaction():
            clone = PriceBook(
                id=new_id('pb'),
                name=overrides.get('name') or f"{source.name} (Copy)",
                market=overrides.get('market') or source.market,
                channel_id=overrides['channel_id'] if 'channel_id' in overrides else source.channel_id,
                currency=overrides.get('currency') or source.currency,
                valid_from=valid_from,
                valid_to=valid_to,
                status=PriceBookStatus.DRAFT,
            )
            clone.entries = {
                item_id: PriceBookEntry(item_id=item_id, base_price=entry.base_price, source=PriceSource.MANUAL)
                for item_id, entry in source.entries.items()
            }
            self.store.price_books[clone.id] = clone

        logger.info(f"Cloned price book {source.id} into {clone.id} ({len(clone.entries)} entries)")
        self.audit.record('PriceBook', clone.id, None, clone.status.value, details={
            'cloned_from': source.id,
            'entries_copied': len(clone.entries),
        })
        return clone

    # ------------------------------------------------------------------
    # Entry editing (Draft only)
    # ------------------------------------------------------------------

    def set_entry(self, book: PriceBook, item_id: str, price) -> PriceBookEntry:
        self._require_editable(book)
        self.store.get_item(item_id)
        price = to_money(price)
        if price < 0:
            raise ValueError("Base price cannot be negative")
        entry = PriceBookEntry(item_id=item_id, base_price=price, source=PriceSource.MANUAL)
        book.entries[item_id] = entry
        return entry

    def remove_entry(self, book: PriceBook, item_id: str) -> Optional[PriceBookEntry]:
        self._require_editable(book)
        return book.entries.pop(item_id, None)

    def _require_editable(self, book: PriceBook):
        if not book.is_editable():
            raise InvalidTransitionError(
                "Cannot edit PriceBook entries",
                [f"current status '{book.status.label}' is not Draft"],
            )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_overlapping_active(self, book: PriceBook) -> list[PriceBook]:
        return [
            other for other in self.store.price_books.values()
            if other.id != book.id
            and other.is_active()
            and other.context_key == book.context_key
            and other.overlaps(book)
        ]

    def get_active_for_context(
        self,
        market: str,
        channel_id: Optional[str],
        currency: str,
        at=None,
    ) -> Optional[PriceBook]:
        """Active book for an exact (market, channel, currency) valid on ``at``."""
        day = _as_date(at)
        for book in self.store.price_books.values():
            if (
                book.is_active()
                and book.context_key == (market, channel_id, currency)
                and book.is_valid_on(day)
            ):
                return book
        return None

    def resolve_for_channel(self, channel_id: str, at=None) -> Optional[PriceBook]:
        """
        Active book valid on ``at`` for a channel.

        Channel-specific books win over channel-agnostic ones, then the latest
        ``valid_from``.
        """
        day = _as_date(at)
        candidates = [
            book for book in self.store.price_books.values()
            if book.is_active()
            and book.channel_id in (channel_id, None)
            and book.is_valid_on(day)
        ]
        if not candidates:
            return None
        candidates.sort(key=lambda b: (b.channel_id is None, -b.valid_from.toordinal(), b.id))
        return candidates[0]

    def get_entry(self, book: PriceBook, item_id: str) -> Optional[PriceBookEntry]:
        return book.entry_for(item_id)

    def get_base_price(self, book: PriceBook, item_id: str) -> Optional[Decimal]:
        entry = book.entry_for(item_id)
        return entry.base_price if entry is not None else None

    def can_activate(self, book: PriceBook) -> bool:
        return book.is_draft() and book.has_entries()

    def can_archive(self, book: PriceBook) -> bool:
        return book.can_be_archived()

    def _log_transition(self, book: PriceBook, old_status: PriceBookStatus, actor: Optional[str] = None):
        logger.info(f"PriceBook {book.id}: {old_status.value} -> {book.status.value}")
        self.audit.record('PriceBook', book.id, old_status.value, book.status.value, actor=actor)

from datetime import date
from decimal import Decimal

import pytest

from commercial_pricing.engine.audit import InMemoryAuditSink
from commercial_pricing.engine.enums import PriceBookStatus, PriceSource
from commercial_pricing.engine.models import PriceBook
from commercial_pricing.exceptions import InvalidTransitionError
from commercial_pricing.services.price_book_service import PriceBookService


@pytest.fixture
def service(store, audit):
    return PriceBookService(store, audit)


def active_for(store, key):
    return [b for b in store.price_books.values() if b.is_active() and b.context_key == key]


def test_activate_expires_overlapping_book(service, store, audit):
    draft = store.get_price_book('pb-fr-web-h2')
    current = store.get_price_book('pb-fr-web')

    service.activate(draft, store.get_approver('apr-001'))

    assert draft.status == PriceBookStatus.ACTIVE
    assert draft.approved_by == 'apr-001'
    assert draft.approved_at is not None
    assert current.status == PriceBookStatus.EXPIRED
    assert active_for(store, ('FR', 'ch-web', 'EUR')) == [draft]
    assert audit.transitions_for('pb-fr-web') == [('active', 'expired')]
    assert audit.for_entity('pb-fr-web-h2')[0].actor == 'apr-001'


def test_activate_collects_every_reason(service, store):
    empty = PriceBook(id='pb-empty', name='Empty', market='FR', currency='EUR', valid_from=date(2026, 1, 1),
                      status=PriceBookStatus.EXPIRED)
    store.price_books[empty.id] = empty

    with pytest.raises(InvalidTransitionError) as exc:
        service.activate(empty, store.get_approver('apr-002'))

    assert len(exc.value.reasons) == 3
    assert "not Draft" in str(exc.value)
    assert empty.status == PriceBookStatus.EXPIRED


def test_activate_without_rights_changes_nothing(service, store, audit):
    draft = store.get_price_book('pb-fr-web-h2')
    with pytest.raises(InvalidTransitionError):
        service.activate(draft, store.get_approver('apr-002'))
    assert draft.is_draft()
    assert store.get_price_book('pb-fr-web').is_active()
    assert audit.entries == []


class FailingAuditSink(InMemoryAuditSink):
    """Fails when a book is recorded as becoming active."""

    def record(self, entity, entity_id, old_state, new_state, actor=None, details=None):
        if new_state == 'active':
            raise RuntimeError("audit store unavailable")
        super().record(entity, entity_id, old_state, new_state, actor, details)


def test_activation_is_atomic(store):
    service = PriceBookService(store, FailingAuditSink())
    draft = store.get_price_book('pb-fr-web-h2')

    with pytest.raises(RuntimeError):
        service.activate(draft, store.get_approver('apr-001'))

    assert draft.is_draft()
    assert draft.approved_by is None
    assert store.get_price_book('pb-fr-web').is_active()


def test_non_overlapping_books_stay_active(service, store):
    later = PriceBook(id='pb-2027', name='France Web 2027', market='FR', channel_id='ch-web', currency='EUR',
                      valid_from=date(2027, 1, 1))
    store.price_books[later.id] = later
    store.get_price_book('pb-fr-web').valid_to = date(2026, 12, 31)
    service.set_entry(later, 'itm-001', '120')

    service.activate(later, store.get_approver('apr-001'))

    assert store.get_price_book('pb-fr-web').is_active()
    assert later.is_active()


def test_archive_and_expire_guards(service, store):
    draft = store.get_price_book('pb-fr-web-h2')
    with pytest.raises(InvalidTransitionError):
        service.archive(draft)
    with pytest.raises(InvalidTransitionError):
        service.expire(draft)

    expired = store.get_price_book('pb-fr-trade-2025')
    service.archive(expired)
    assert expired.is_archived()


def test_entries_are_editable_only_in_draft(service, store):
    draft = store.get_price_book('pb-fr-web-h2')
    entry = service.set_entry(draft, 'itm-002', '199.999')
    assert entry.base_price == Decimal('200.00')
    assert service.remove_entry(draft, 'itm-002') is entry

    with pytest.raises(ValueError):
        service.set_entry(draft, 'itm-002', '-1')
    with pytest.raises(InvalidTransitionError):
        service.set_entry(store.get_price_book('pb-fr-web'), 'itm-002', '10')


def test_clone_to_new_copies_entries_as_manual(service, store, audit):
    source = store.get_price_book('pb-fr-web')
    source.entries['itm-001'].source = PriceSource.POLICY_GENERATED
    source.entries['itm-001'].policy_id = 'pol-x'

    clone = service.clone_to_new(source, {'name': 'France Web 2027', 'valid_from': date(2027, 1, 1)})

    assert clone.id in store.price_books
    assert clone.is_draft()
    assert clone.name == 'France Web 2027'
    assert clone.valid_from == date(2027, 1, 1)
    assert clone.context_key == source.context_key
    assert set(clone.entries) == set(source.entries)
    assert clone.entries['itm-001'].source == PriceSource.MANUAL
    assert clone.entries['itm-001'].policy_id is None
    assert clone.entries['itm-001'] is not source.entries['itm-001']
    assert audit.for_entity(clone.id)[0].details['cloned_from'] == source.id


def test_clone_rejects_unknown_overrides(service, store):
    with pytest.raises(ValueError):
        service.clone_to_new(store.get_price_book('pb-fr-web'), {'status': 'active'})


def test_resolve_for_channel_prefers_channel_specific(service, store, at):
    assert service.resolve_for_channel('ch-web', at).id == 'pb-fr-web'
    # No channel-specific active book for trade, so the default applies
    assert service.resolve_for_channel('ch-trade', at).id == 'pb-fr-default'
    assert service.resolve_for_channel('ch-trade', date(2027, 6, 1)) is None


def test_get_active_for_context(service, at):
    assert service.get_active_for_context('FR', 'ch-web', 'EUR', at).id == 'pb-fr-web'
    assert service.get_active_for_context('FR', None, 'EUR', at).id == 'pb-fr-default'
    assert service.get_active_for_context('UK', 'ch-web', 'EUR', at) is None


def test_base_price_lookup(service, store):
    book = store.get_price_book('pb-fr-web')
    assert service.get_base_price(book, 'itm-001') == Decimal('100.00')
    assert service.get_base_price(book, 'itm-006') is None


def test_clone_rejects_inverted_window(service, store):
    source = store.get_price_book('pb-fr-trade-2025')
    count = len(store.price_books)

    with pytest.raises(InvalidTransitionError) as exc:
        service.clone_to_new(source, {'valid_from': date(2026, 1, 1)})
    assert exc.value.reasons == ["valid_to 2025-12-31 is before valid_from 2026-01-01"]

    # Without an override the window starts today, still after the 2025 end date
    with pytest.raises(InvalidTransitionError):
        service.clone_to_new(source)
    assert len(store.price_books) == count


def test_activate_refuses_inverted_window_and_keeps_live_book(service, store):
    broken = PriceBook(id='pb-broken', name='Broken', market='FR', channel_id='ch-web', currency='EUR',
                       valid_from=date(2026, 9, 1), valid_to=date(2026, 3, 31))
    broken.entries = dict(store.get_price_book('pb-fr-web').entries)
    store.price_books[broken.id] = broken

    with pytest.raises(InvalidTransitionError) as exc:
        service.activate(broken, store.get_approver('apr-001'))

    assert exc.value.reasons == ["valid_to 2026-03-31 is before valid_from 2026-09-01"]
    assert broken.is_draft()
    assert store.get_price_book('pb-fr-web').is_active()

import json
from decimal import Decimal

from commercial_pricing.config.settings import Settings
from commercial_pricing.data.load_fixtures import load_fixtures, save_report
from commercial_pricing.engine.enums import OfferStatus, PriceBookStatus
from commercial_pricing.engine.logic import IndexBasedLogic


def test_report(report):
    assert report["status"] == "success"
    assert report["errors"] == []
    assert report["warnings"] == []
    assert report["metrics"]["items"] == 6
    assert report["metrics"]["price_book_entries"] == 10
    assert report["metrics"]["offers"] == 5
    assert len(report["input_files"]["items"]["hash"]) == 12


def test_records(store):
    book = store.get_price_book('pb-fr-web')
    assert book.status == PriceBookStatus.ACTIVE
    assert book.valid_to is None
    assert book.entries['itm-001'].base_price == Decimal('100.00')

    assert store.get_constraint('con-001').allowed_channels == ['ch-web', 'ch-trade']
    assert store.get_offer('of-002').eligibility.allowed_membership_tiers == ['gold']
    assert store.get_offer('of-004').status == OfferStatus.DRAFT
    assert isinstance(store.get_policy('pol-index').logic, IndexBasedLogic)
    assert store.get_policy('pol-index').schedule.hour_minute() == (6, 0)
    assert store.get_item('itm-003').unit_cost is None


def test_missing_file_fails(tmp_path):
    settings = Settings.load(data_dir=tmp_path)
    store, report = load_fixtures(settings)
    assert report["status"] == "failed"
    assert any("items.csv not found" in e for e in report["errors"])
    assert store.items == {}


def test_bad_rows_are_skipped_with_warnings(tmp_path):
    base = Settings.load()
    for path in base.data_dir.iterdir():
        (tmp_path / path.name).write_bytes(path.read_bytes())

    with open(tmp_path / 'items.csv', 'a') as f:
        f.write("itm-007,BAD-1,Broken cost,wv-009,fmt-075,active,abc\n")
    document = json.loads((tmp_path / 'commercial.json').read_text())
    document['discount_rules'].append({'id': 'dr-bad', 'name': 'Bad', 'rule_type': 'percentage', 'logic': {}})
    (tmp_path / 'commercial.json').write_text(json.dumps(document))

    store, report = load_fixtures(Settings.load(data_dir=tmp_path))

    assert report["status"] == "success"
    assert 'itm-007' not in store.items
    assert 'dr-bad' not in store.discount_rules
    assert len(report["warnings"]) == 2


def test_save_report(report, tmp_path):
    path = save_report(report, tmp_path / 'out' / 'report.json')
    assert json.loads(path.read_text())["status"] == "success"


def copy_fixtures(tmp_path):
    for path in Settings.load().data_dir.iterdir():
        (tmp_path / path.name).write_bytes(path.read_bytes())
    return Settings.load(data_dir=tmp_path)


def test_inverted_price_book_window_is_skipped(tmp_path):
    settings = copy_fixtures(tmp_path)
    with open(tmp_path / 'price_books.csv', 'a') as f:
        f.write("pb-inverted,Inverted,FR,ch-uk,GBP,2026-09-01,2026-03-31,draft,\n")

    store, report = load_fixtures(settings)

    assert 'pb-inverted' not in store.price_books
    assert report["warnings"] == [
        "Skipped price_books 'pb-inverted': valid_to 2026-03-31 is before valid_from 2026-09-01"
    ]


def test_overlapping_active_books_are_reported(tmp_path):
    settings = copy_fixtures(tmp_path)
    with open(tmp_path / 'price_books.csv', 'a') as f:
        f.write("pb-fr-web-promo,France Web Promo,FR,ch-web,EUR,2026-05-01,2026-06-30,active,apr-001\n")

    store, report = load_fixtures(settings)

    assert store.get_price_book('pb-fr-web-promo').is_active()
    assert report["status"] == "success"
    assert report["warnings"] == [
        "Active price books 'pb-fr-web' and 'pb-fr-web-promo' overlap for context ('FR', 'ch-web', 'EUR')"
    ]

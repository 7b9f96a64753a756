"""
Fixture Loader - Builds a CommercialStore from seed data files.

Upstream tables (items, channels, market prices, allocations, constraints,
price books and their entries) are CSV files read with pandas; commercial
definitions (approvers, discount rules, offers, bundles, policies) live in
one JSON document whose logic blocks go through the logic parser.

Produces a build report alongside the store:
- input file hashes
- per-collection record counts
- warnings for skipped records, errors for missing or unreadable files
"""
import hashlib
import json
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from ..config.log import get_logger
from ..config.settings import Settings, get_settings
from ..engine.enums import (
    AllocationStatus,
    BenefitType,
    BundlePricingLogic,
    BundleStatus,
    DiscountRuleStatus,
    ExecutionCadence,
    ItemStatus,
    OfferStatus,
    OfferType,
    OfferVisibility,
    PriceBookStatus,
    PriceSource,
    PricingPolicyStatus,
    ScopeType,
)
from ..engine.models import (
    Allocation,
    AllocationConstraint,
    Approver,
    Benefit,
    Bundle,
    BundleComponent,
    Channel,
    DiscountRule,
    Eligibility,
    MarketPriceReference,
    Offer,
    PolicyScope,
    PriceBook,
    PriceBookEntry,
    PricingPolicy,
    SellableItem,
)
from ..engine.money import to_money, to_utc, utcnow
from ..engine.store import CommercialStore, new_id
from ..exceptions import LogicDefinitionError
from ..rules.logic_parser import (
    parse_optional_str,
    parse_schedule,
    require_discount_rule_logic,
    require_policy_logic,
)

logger = get_logger(__name__)

LIST_SEPARATOR = '|'

REQUIRED_COLUMNS = {
    'items': ['id', 'sku_code', 'product_name'],
    'channels': ['id', 'name'],
    'market_prices': ['id', 'item_id', 'market', 'value'],
    'allocations': ['id', 'wine_variant_id', 'format_id'],
    'constraints': ['id'],
    'price_books': ['id', 'name', 'market', 'currency', 'valid_from'],
    'price_book_entries': ['price_book_id', 'item_id', 'base_price'],
}


class FixtureError(ValueError):
    """A fixture row that cannot be turned into a record."""


def get_file_hash(path: Path) -> str:
    """Get SHA256 hash of a file."""
    if not path.exists():
        return ""
    with open(path, 'rb') as f:
        return hashlib.sha256(f.read()).hexdigest()[:12]


# ---------------------------------------------------------------------------
# Cell parsing
# ---------------------------------------------------------------------------

def _split(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [part.strip() for part in str(value).split(LIST_SEPARATOR) if part.strip()]


def _datetime(value) -> Optional[datetime]:
    if parse_optional_str(value) is None:
        return None
    try:
        return to_utc(pd.Timestamp(value).to_pydatetime())
    except ValueError as exc:
        raise FixtureError(f"invalid datetime '{value}'") from exc


def _date(value) -> Optional[date]:
    if parse_optional_str(value) is None:
        return None
    try:
        return pd.Timestamp(value).date()
    except ValueError as exc:
        raise FixtureError(f"invalid date '{value}'") from exc


def _money(value, name: str, required: bool = False):
    if parse_optional_str(value) is None:
        if required:
            raise FixtureError(f"{name} is required")
        return None
    try:
        return to_money(value)
    except ArithmeticError as exc:
        raise FixtureError(f"{name} must be numeric, got '{value}'") from exc


def _int(value, default: int = 0) -> int:
    if parse_optional_str(value) is None:
        return default
    try:
        return int(float(value))
    except ValueError as exc:
        raise FixtureError(f"expected an integer, got '{value}'") from exc


def _enum(enum_cls, value, default):
    text = parse_optional_str(value)
    if text is None:
        return default
    try:
        return enum_cls(text.lower())
    except ValueError as exc:
        raise FixtureError(f"unknown {enum_cls.__name__} '{value}'") from exc


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------

def _item(row: dict) -> SellableItem:
    return SellableItem(
        id=row['id'],
        sku_code=row['sku_code'],
        product_name=row['product_name'],
        wine_variant_id=parse_optional_str(row.get('wine_variant_id')),
        format_id=parse_optional_str(row.get('format_id')),
        lifecycle_status=_enum(ItemStatus, row.get('lifecycle_status'), ItemStatus.ACTIVE),
        unit_cost=_money(row.get('unit_cost'), 'unit_cost'),
    )


def _channel(row: dict) -> Channel:
    return Channel(
        id=row['id'],
        name=row['name'],
        channel_type=parse_optional_str(row.get('channel_type')) or 'b2c',
        default_currency=parse_optional_str(row.get('default_currency')),
    )


def _market_price(row: dict) -> MarketPriceReference:
    return MarketPriceReference(
        id=row['id'],
        item_id=row['item_id'],
        market=row['market'],
        value=_money(row['value'], 'value', required=True),
        fetched_at=_datetime(row.get('fetched_at')),
        source=parse_optional_str(row.get('source')) or 'external',
        confidence=parse_optional_str(row.get('confidence')) or 'medium',
    )


def _allocation(row: dict) -> Allocation:
    return Allocation(
        id=row['id'],
        wine_variant_id=parse_optional_str(row.get('wine_variant_id')),
        format_id=parse_optional_str(row.get('format_id')),
        status=_enum(AllocationStatus, row.get('status'), AllocationStatus.ACTIVE),
        total_quantity=_int(row.get('total_quantity')),
        sold_quantity=_int(row.get('sold_quantity')),
        constraint_id=parse_optional_str(row.get('constraint_id')),
        supply_form=parse_optional_str(row.get('supply_form')) or 'owned',
    )


def _constraint(row: dict) -> AllocationConstraint:
    return AllocationConstraint(
        id=row['id'],
        allowed_channels=_split(row.get('allowed_channels')),
        allowed_markets=_split(row.get('allowed_markets')),
        allowed_customer_types=_split(row.get('allowed_customer_types')),
    )


def _price_book(row: dict) -> PriceBook:
    approved_by = parse_optional_str(row.get('approved_by'))
    status = _enum(PriceBookStatus, row.get('status'), PriceBookStatus.DRAFT)
    valid_from = _date(row['valid_from'])
    if valid_from is None:
        raise FixtureError("valid_from is required")
    valid_to = _date(row.get('valid_to'))
    if valid_to is not None and valid_to < valid_from:
        raise FixtureError(f"valid_to {valid_to} is before valid_from {valid_from}")
    return PriceBook(
        id=row['id'],
        name=row['name'],
        market=row['market'],
        currency=row['currency'].upper(),
        valid_from=valid_from,
        valid_to=valid_to,
        channel_id=parse_optional_str(row.get('channel_id')),
        status=status,
        approved_by=approved_by,
        approved_at=utcnow() if approved_by and status != PriceBookStatus.DRAFT else None,
    )


def _approver(data: dict) -> Approver:
    return Approver(
        id=data['id'],
        name=data.get('name') or data['id'],
        can_approve_price_books=bool(data.get('can_approve_price_books', False)),
    )


def _discount_rule(data: dict) -> DiscountRule:
    return DiscountRule(
        id=data['id'],
        name=data['name'],
        logic=require_discount_rule_logic(data.get('rule_type'), data.get('logic')),
        status=_enum(DiscountRuleStatus, data.get('status'), DiscountRuleStatus.ACTIVE),
    )


def _offer(data: dict) -> Offer:
    eligibility = None
    if data.get('eligibility'):
        e = data['eligibility']
        eligibility = Eligibility(
            allowed_markets=_split(e.get('allowed_markets')),
            allowed_customer_types=_split(e.get('allowed_customer_types')),
            allowed_membership_tiers=_split(e.get('allowed_membership_tiers')),
            allocation_constraint_id=parse_optional_str(e.get('allocation_constraint_id')),
        )
    benefit = None
    if data.get('benefit'):
        b = data['benefit']
        benefit = Benefit(
            benefit_type=_enum(BenefitType, b.get('benefit_type'), BenefitType.NONE),
            value=_money(b.get('value'), 'benefit value'),
            discount_rule_id=parse_optional_str(b.get('discount_rule_id')),
        )

    valid_from = _datetime(data.get('valid_from'))
    if valid_from is None:
        raise FixtureError("valid_from is required")
    return Offer(
        id=data['id'],
        name=data['name'],
        item_id=data['item_id'],
        channel_id=data['channel_id'],
        price_book_id=data['price_book_id'],
        valid_from=valid_from,
        valid_to=_datetime(data.get('valid_to')),
        offer_type=_enum(OfferType, data.get('offer_type'), OfferType.STANDARD),
        visibility=_enum(OfferVisibility, data.get('visibility'), OfferVisibility.PUBLIC),
        status=_enum(OfferStatus, data.get('status'), OfferStatus.DRAFT),
        campaign_tag=parse_optional_str(data.get('campaign_tag')),
        eligibility=eligibility,
        benefit=benefit,
        created_at=_datetime(data.get('created_at')) or valid_from,
    )


def _bundle(data: dict) -> Bundle:
    components = [
        BundleComponent(
            id=c.get('id') or new_id('bc'),
            item_id=c['item_id'],
            quantity=_int(c.get('quantity'), 1),
        )
        for c in data.get('components', [])
    ]
    return Bundle(
        id=data['id'],
        name=data['name'],
        bundle_sku=data.get('bundle_sku') or data['id'],
        pricing_logic=_enum(BundlePricingLogic, data.get('pricing_logic'), BundlePricingLogic.SUM_COMPONENTS),
        components=components,
        fixed_price=_money(data.get('fixed_price'), 'fixed_price'),
        percentage_off=_money(data.get('percentage_off'), 'percentage_off'),
        status=_enum(BundleStatus, data.get('status'), BundleStatus.DRAFT),
    )


def _policy(data: dict) -> PricingPolicy:
    scope = None
    if data.get('scope'):
        s = data['scope']
        scope = PolicyScope(
            scope_type=_enum(ScopeType, s.get('scope_type'), ScopeType.ALL),
            reference=parse_optional_str(s.get('reference')),
            markets=_split(s.get('markets')),
            channels=_split(s.get('channels')),
        )
    schedule, errors = parse_schedule(data.get('schedule'))
    if errors:
        raise LogicDefinitionError(errors)
    return PricingPolicy(
        id=data['id'],
        name=data['name'],
        logic=require_policy_logic(data.get('policy_type'), data.get('logic')),
        target_price_book_id=parse_optional_str(data.get('target_price_book_id')),
        scope=scope,
        status=_enum(PricingPolicyStatus, data.get('status'), PricingPolicyStatus.DRAFT),
        execution_cadence=_enum(ExecutionCadence, data.get('execution_cadence'), ExecutionCadence.MANUAL),
        schedule=schedule,
        last_executed_at=_datetime(data.get('last_executed_at')),
    )


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _read_table(path: Path, key: str, report: dict) -> Optional[pd.DataFrame]:
    """Read one CSV table as stripped strings; None (with an error) when unusable."""
    if not path.exists():
        report["errors"].append(f"CRITICAL ERROR: {path} not found.")
        return None

    report["input_files"][key] = {
        "path": str(path),
        "hash": get_file_hash(path),
    }
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        report["errors"].append(f"ERROR: Failed to read {path}. {e}")
        return None

    df.columns = df.columns.str.strip()
    missing = [c for c in REQUIRED_COLUMNS[key] if c not in df.columns]
    if missing:
        report["errors"].append(f"ERROR: {path.name} is missing columns: {', '.join(missing)}")
        return None

    df = df.apply(lambda col: col.str.strip())
    duplicates = int(df['id'].duplicated().sum()) if 'id' in df.columns else 0
    if duplicates:
        report["warnings"].append(f"{duplicates} duplicate ids in {path.name} (kept first)")
        df = df.drop_duplicates('id')
    return df


def _add_records(rows, builder, collection: dict, key: str, report: dict):
    loaded = 0
    for row in rows:
        try:
            record = builder(row)
        except (KeyError, FixtureError, LogicDefinitionError) as e:
            label = row.get('id', '?') if isinstance(row, dict) else '?'
            msg = f"Skipped {key} '{label}': {e}"
            report["warnings"].append(msg)
            logger.warning(msg)
            continue
        collection[record.id] = record
        loaded += 1
    report["metrics"][key] = loaded


def _load_entries(df: pd.DataFrame, store: CommercialStore, report: dict):
    loaded = 0
    for row in df.to_dict(orient='records'):
        book = store.price_books.get(row['price_book_id'])
        if book is None:
            report["warnings"].append(f"Entry for unknown price book '{row['price_book_id']}' skipped")
            continue
        if row['item_id'] not in store.items:
            report["warnings"].append(f"Entry in '{book.id}' for unknown item '{row['item_id']}' skipped")
            continue
        try:
            price = _money(row['base_price'], 'base_price', required=True)
            source = _enum(PriceSource, row.get('source'), PriceSource.MANUAL)
        except FixtureError as e:
            report["warnings"].append(f"Entry {book.id}/{row['item_id']} skipped: {e}")
            continue
        if price < 0:
            report["warnings"].append(f"Entry {book.id}/{row['item_id']} skipped: negative base price")
            continue
        book.entries[row['item_id']] = PriceBookEntry(
            item_id=row['item_id'],
            base_price=price,
            source=source,
            policy_id=parse_optional_str(row.get('policy_id')),
        )
        loaded += 1
    report["metrics"]["price_book_entries"] = loaded


def load_fixtures(settings: Optional[Settings] = None) -> tuple[CommercialStore, dict]:
    """
    Build a store from the configured fixture files.

    Args:
        settings: Optional settings override

    Returns:
        (store, build report dictionary)
    """
    settings = settings or get_settings()
    store = CommercialStore()

    report = {
        "timestamp": utcnow().isoformat(),
        "status": "pending",
        "input_files": {},
        "metrics": {},
        "warnings": [],
        "errors": [],
    }

    tables = [
        ('items', settings.items_csv, _item, store.items),
        ('channels', settings.channels_csv, _channel, store.channels),
        ('constraints', settings.constraints_csv, _constraint, store.constraints),
        ('allocations', settings.allocations_csv, _allocation, store.allocations),
        ('market_prices', settings.market_prices_csv, _market_price, store.market_prices),
        ('price_books', settings.price_books_csv, _price_book, store.price_books),
    ]
    for key, path, builder, collection in tables:
        df = _read_table(path, key, report)
        if df is not None:
            _add_records(df.to_dict(orient='records'), builder, collection, key, report)

    entries = _read_table(settings.price_book_entries_csv, 'price_book_entries', report)
    if entries is not None:
        _load_entries(entries, store, report)

    json_path = settings.commercial_json
    if not json_path.exists():
        report["errors"].append(f"CRITICAL ERROR: {json_path} not found.")
    else:
        report["input_files"]["commercial"] = {
            "path": str(json_path),
            "hash": get_file_hash(json_path),
        }
        try:
            with open(json_path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            report["errors"].append(f"ERROR: Failed to read {json_path}. {e}")
            document = {}

        for key, builder, collection in (
            ('approvers', _approver, store.approvers),
            ('discount_rules', _discount_rule, store.discount_rules),
            ('offers', _offer, store.offers),
            ('bundles', _bundle, store.bundles),
            ('policies', _policy, store.policies),
        ):
            _add_records(document.get(key, []), builder, collection, key, report)

    _check_references(store, report)

    report["status"] = "failed" if report["errors"] else "success"
    logger.info(
        f"Fixtures loaded ({report['status']}): "
        + ", ".join(f"{k}={v}" for k, v in report["metrics"].items())
    )
    for msg in report["errors"]:
        logger.error(msg)
    return store, report


def _check_references(store: CommercialStore, report: dict):
    """Warn about dangling ids and about Active books sharing a context and window."""
    active = sorted((b for b in store.price_books.values() if b.is_active()), key=lambda b: b.id)
    for i, book in enumerate(active):
        for other in active[i + 1:]:
            if book.context_key == other.context_key and book.overlaps(other):
                report["warnings"].append(
                    f"Active price books '{book.id}' and '{other.id}' overlap for context {book.context_key}"
                )
    for offer in store.offers.values():
        if offer.item_id not in store.items:
            report["warnings"].append(f"Offer '{offer.id}' references unknown item '{offer.item_id}'")
        if offer.channel_id not in store.channels:
            report["warnings"].append(f"Offer '{offer.id}' references unknown channel '{offer.channel_id}'")
        if offer.price_book_id not in store.price_books:
            report["warnings"].append(f"Offer '{offer.id}' references unknown price book '{offer.price_book_id}'")
        rule_id = offer.benefit.discount_rule_id if offer.benefit else None
        if rule_id and rule_id not in store.discount_rules:
            report["warnings"].append(f"Offer '{offer.id}' references unknown discount rule '{rule_id}'")
    for allocation in store.allocations.values():
        if allocation.constraint_id and allocation.constraint_id not in store.constraints:
            report["warnings"].append(
                f"Allocation '{allocation.id}' references unknown constraint '{allocation.constraint_id}'"
            )
    for policy in store.policies.values():
        if policy.target_price_book_id and policy.target_price_book_id not in store.price_books:
            report["warnings"].append(
                f"Policy '{policy.id}' targets unknown price book '{policy.target_price_book_id}'"
            )


def save_report(report: dict, path: Path) -> Path:
    """Write a build report as JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(report, f, indent=2)
    return path


if __name__ == "__main__":
    _, build_report = load_fixtures()
    print(json.dumps(build_report, indent=2))

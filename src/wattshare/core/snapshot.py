"""JSON encoding of the ledger and decoding of backup payloads.

Backups come in two shapes: the current ``{"bills": [...], "settings":
{...}}`` document and an older bare list of bills. Both are decoded here
and normalized to a ``LedgerSnapshot`` before anything reaches the ledger.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Iterable, Literal, Optional, Union

from dateutil import parser as date_parser
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StrictStr
from pydantic import ValidationError as PydanticValidationError

from wattshare.core.bills import BaselineSettings, Bill, MainBill, Readings, new_bill_id
from wattshare.core.errors import MalformedBackupError


def _strict_number(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValueError("must be a number")
    return value


Number = Annotated[Decimal, BeforeValidator(_strict_number)]


class BackupMain(BaseModel):
    model_config = ConfigDict(extra="ignore")

    amount: Number
    kwh: Number


class BackupReadings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    top: Annotated[Number, Field(ge=0)]
    bottom: Annotated[Number, Field(ge=0)]


class BackupBill(BaseModel):
    """One bill record as it appears in a backup or in local storage."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[StrictStr] = None
    date: StrictStr
    main: BackupMain
    readings: BackupReadings


class BackupSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    top: Optional[Number] = None
    bottom: Optional[Number] = None


@dataclass(frozen=True)
class StructuredBackup:
    kind: Literal["structured"]
    bills: list[Any]
    settings: Any


@dataclass(frozen=True)
class LegacyBackup:
    kind: Literal["legacy"]
    bills: list[Any]


BackupPayload = Union[StructuredBackup, LegacyBackup]


@dataclass(frozen=True)
class LedgerSnapshot:
    """Canonical shape handed to ``Ledger.replace_all``."""

    bills: tuple[Bill, ...]
    settings: BaselineSettings


def classify_payload(data: Any) -> BackupPayload:
    """Tells the two accepted backup shapes apart."""
    if isinstance(data, list):
        return LegacyBackup(kind="legacy", bills=data)
    if isinstance(data, dict) and isinstance(data.get("bills"), list):
        return StructuredBackup(kind="structured", bills=data["bills"], settings=data.get("settings"))
    raise MalformedBackupError("expected a list of bills or an object with a 'bills' list")


_FILL_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))


def parse_bill_date(value: str) -> date:
    """
    Parses a stored or imported date string; ISO first, then other formats.

    The string must name a year, a month and a day. Anything dateutil
    would complete from its default (``"1"``, ``"March 2024"``) raises
    ``ValueError``.
    """
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        pass
    parsed = {date_parser.parse(value, default=default).date() for default in _FILL_DEFAULTS}
    if len(parsed) != 1:
        raise ValueError(f"'{value}' is not a complete date")
    return parsed.pop()


def _first_error(exc: PydanticValidationError) -> tuple[str, str]:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error["loc"])
    return field, error["msg"]


def _decode_bill(raw: Any, record: int) -> BackupBill:
    try:
        return BackupBill.model_validate(raw)
    except PydanticValidationError as exc:
        field, reason = _first_error(exc)
        raise MalformedBackupError(reason, record=record, field=field) from exc


def decode_settings(raw: Any) -> BaselineSettings:
    if raw is None:
        return BaselineSettings()
    try:
        settings = BackupSettings.model_validate(raw)
    except PydanticValidationError as exc:
        field, reason = _first_error(exc)
        raise MalformedBackupError(reason, field=f"settings.{field}") from exc
    return BaselineSettings(top=settings.top, bottom=settings.bottom)


def decode_bills(raw_bills: Iterable[Any]) -> tuple[Bill, ...]:
    """
    Validates every record and converts it to a ``Bill``.

    Records without an id, or repeating an id already seen, get a new one.
    """
    bills: list[Bill] = []
    seen: set[str] = set()
    for record, raw in enumerate(raw_bills, start=1):
        parsed = _decode_bill(raw, record)
        try:
            bill_date = parse_bill_date(parsed.date)
        except (ValueError, OverflowError) as exc:
            raise MalformedBackupError(
                f"'{parsed.date}' is not a date", record=record, field="date"
            ) from exc

        bill_id = parsed.id
        while not bill_id or bill_id in seen:
            bill_id = new_bill_id()
        seen.add(bill_id)

        bills.append(
            Bill(
                id=bill_id,
                date=bill_date,
                main=MainBill(amount=parsed.main.amount, kwh=parsed.main.kwh),
                readings=Readings(top=parsed.readings.top, bottom=parsed.readings.bottom),
            )
        )
    return tuple(bills)


def decode_snapshot(data: Any) -> LedgerSnapshot:
    """Validates a parsed backup document and normalizes it."""
    payload = classify_payload(data)
    if isinstance(payload, StructuredBackup):
        settings = decode_settings(payload.settings)
    else:
        settings = BaselineSettings()
    return LedgerSnapshot(bills=decode_bills(payload.bills), settings=settings)


def loads(text: str) -> Any:
    """Parses JSON keeping fractional numbers exact."""
    return json.loads(text, parse_float=Decimal)


def _json_number(value: Decimal | None) -> int | float | None:
    if value is None:
        return None
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def bill_to_dict(bill: Bill) -> dict[str, Any]:
    return {
        "id": bill.id,
        "date": bill.date.isoformat(),
        "main": {"amount": _json_number(bill.main.amount), "kwh": _json_number(bill.main.kwh)},
        "readings": {
            "top": _json_number(bill.readings.top),
            "bottom": _json_number(bill.readings.bottom),
        },
    }


def settings_to_dict(settings: BaselineSettings) -> dict[str, Any]:
    return {"top": _json_number(settings.top), "bottom": _json_number(settings.bottom)}


def snapshot_to_dict(snapshot: LedgerSnapshot) -> dict[str, Any]:
    """The structured backup document."""
    return {
        "bills": [bill_to_dict(bill) for bill in snapshot.bills],
        "settings": settings_to_dict(snapshot.settings),
    }


def dump_bills(bills: Iterable[Bill]) -> str:
    return json.dumps([bill_to_dict(bill) for bill in bills], ensure_ascii=False)


def dump_settings(settings: BaselineSettings) -> str:
    return json.dumps(settings_to_dict(settings))

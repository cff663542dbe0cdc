from dataclasses import dataclass, field
from typing import Iterable, List, Optional
import asyncio
import logging

import structlog

from amount import Amount
from config import Settings, get_settings
from errors import LedgerError
from models import AccountReport, TransactionRecord, TransactionType
from repositories import AccountRepository, get_account_repository, get_transaction_repository
from services import TransactionService, get_transaction_service

logger = structlog.get_logger()

REPORT_HEADER = "client,available,held,total,locked"


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure structured logging once for the whole process."""
    settings = settings or get_settings()

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if level <= logging.DEBUG and not settings.enable_detailed_logging:
        level = logging.INFO
    logging.basicConfig(format="%(message)s", level=level, force=True)

    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@dataclass
class ReplaySummary:
    processed: int = 0
    failed: int = 0
    errors: dict = field(default_factory=dict)  # error_code -> count


async def replay(records: Iterable[TransactionRecord], service: TransactionService) -> ReplaySummary:
    """Feed records to the service in order.

    A rejected record is logged and skipped. A fatal ledger failure is logged
    and re-raised, since nothing applied afterwards could be trusted.
    """
    summary = ReplaySummary()

    for record in records:
        try:
            await service.process(record)
        except LedgerError as e:
            if e.fatal:
                logger.error(
                    "Halting replay after fatal ledger failure",
                    tx_id=record.tx,
                    processed=summary.processed,
                    failed=summary.failed,
                    error_code=e.error_code
                )
                raise
            summary.failed += 1
            summary.errors[e.error_code] = summary.errors.get(e.error_code, 0) + 1
            continue
        summary.processed += 1

    logger.info(
        "Replay completed",
        processed=summary.processed,
        failed=summary.failed,
        errors=summary.errors
    )

    return summary


async def build_report(account_repo: AccountRepository) -> List[AccountReport]:
    return [
        AccountReport.from_account(client, account)
        for client, account in await account_repo.snapshot()
    ]


def render_report(rows: Iterable[AccountReport]) -> str:
    lines = [REPORT_HEADER]
    for row in rows:
        total = row.total if row.total is not None else "OVERFLOW"
        locked = "true" if row.locked else "false"
        lines.append(f"{row.client},{row.available},{row.held},{total},{locked}")
    return "\n".join(lines)


def demo_records() -> List[TransactionRecord]:
    deposit = dict(client=42, tx=1103, type=TransactionType.deposit, amount=Amount.from_decimal(2000.4999))
    return [
        TransactionRecord(**deposit),
        TransactionRecord(**deposit),
        TransactionRecord(client=42, tx=1104, type=TransactionType.withdrawal, amount=3000.4999),
        TransactionRecord(client=42, tx=1103, type=TransactionType.dispute),
        TransactionRecord(client=42, tx=1103, type=TransactionType.chargeback),
        TransactionRecord(client=42, tx=1105, type=TransactionType.deposit, amount=1.0),
    ]


async def run(records: Iterable[TransactionRecord]) -> str:
    account_repo = get_account_repository()
    service = get_transaction_service(account_repo, get_transaction_repository())
    await replay(records, service)
    return render_report(await build_report(account_repo))


def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    logger.info(
        "Starting ledger replay",
        app=settings.app_name,
        version=settings.app_version,
        debug=settings.debug
    )
    print(asyncio.run(run(demo_records())))


if __name__ == "__main__":
    main()

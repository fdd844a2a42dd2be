"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from installment_ledger.config import settings

logger = logging.getLogger("installment_ledger")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers
    root.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)


def log_schedule_generated(
    file_id: str,
    category_id: str,
    count: int,
    total_amount: Decimal,
    first_installment_no: int,
) -> None:
    """Log a persisted schedule batch"""
    logger.info(
        "Schedule generated",
        extra={
            "step": "schedule_generated",
            "file_id": file_id,
            "category_id": category_id,
            "installment_count": count,
            "total_amount": str(total_amount),
            "first_installment_no": first_installment_no,
        },
    )


def log_payment(
    installment_id: str,
    amount: Decimal,
    payment_mode: str,
    status: str,
    balance_amount: Decimal,
    transaction_ref_no: str | None = None,
) -> None:
    """Log an applied payment for reconciliation"""
    logger.info(
        "Payment applied",
        extra={
            "step": "payment_applied",
            "installment_id": installment_id,
            "amount": str(amount),
            "payment_mode": payment_mode,
            "status": status,
            "balance_amount": str(balance_amount),
            "transaction_ref_no": transaction_ref_no,
        },
    )


def log_sweep(job: str, as_of: str, examined: int, updated: int, amount: Decimal | None = None) -> None:
    """Log the outcome of a maintenance sweep"""
    logger.info(
        "Sweep completed",
        extra={
            "step": job,
            "as_of": as_of,
            "examined": examined,
            "updated": updated,
            "amount": str(amount) if amount is not None else None,
        },
    )

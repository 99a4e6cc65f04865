import logging

logger = logging.getLogger(__name__)


def send_borrowing_status_email(
    to_email: str,
    name: str,
    borrowing_id: int,
    equipment_name: str,
    status: str,
    remarks: str | None = None,
) -> bool:
    """
    SMTP disabled; notice printed to the log for development.
    Replace with real provider (SendGrid / Resend / SMTP) when ready.
    """
    logger.info(f"[BORROWING EMAIL] To={to_email} | Name={name} | Borrowing#{borrowing_id} "
                f"| Equipment={equipment_name} | Status={status}")
    if remarks:
        logger.info(f"[BORROWING EMAIL] Remarks: {remarks}")
    return True


def send_return_status_email(
    to_email: str,
    name: str,
    return_id: int,
    equipment_name: str,
    status: str,
    total_fee: float,
) -> bool:
    logger.info(f"[RETURN EMAIL] To={to_email} | Return#{return_id} | Equipment={equipment_name} "
                f"| Status={status} | TotalFee={total_fee:.2f}")
    return True

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy import select
from sqlalchemy.orm import Session

from bookledger.api.deps import get_current_user, log_action, read_receipt
from bookledger.api.formatting import donation_to_dict, money, today
from bookledger.core.config import get_settings
from bookledger.core.exceptions import ValidationError
from bookledger.db.session import get_db
from bookledger.models.donation import Donation, DonationType
from bookledger.models.user import User
from bookledger.services.ledger import PendingReceipt, save_with_receipt
from bookledger.services.receipts import donation_receipt_path
from bookledger.services.summary import year_window


router = APIRouter()


@router.get("")
def list_donations(
    year: int | None = Query(default=None, ge=1900, le=9999),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    selected_year = year or today().year
    start, end = year_window(selected_year)
    rows = db.scalars(
        select(Donation)
        .where(Donation.user_id == current_user.id)
        .where(Donation.date >= start)
        .where(Donation.date <= end)
        .order_by(Donation.date.desc(), Donation.id.desc())
    ).all()
    return {
        "year": selected_year,
        "total": money(sum((row.amount for row in rows), Decimal("0"))),
        "count": len(rows),
        "donations": [donation_to_dict(row) for row in rows],
    }


@router.post("", status_code=201)
async def create_donation(
    date: date = Form(...),
    amount: Decimal = Form(..., gt=0),
    charity: str = Form(..., max_length=200),
    donation_type: DonationType = Form("Cash"),
    method: str = Form("", max_length=120),
    notes: str = Form("", max_length=500),
    receipt: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    charity_name = charity.strip()
    if not charity_name:
        raise ValidationError("Please enter a charity name")
    upload = await read_receipt(receipt)

    row = Donation(
        user_id=current_user.id,
        date=date,
        amount=amount,
        charity=charity_name,
        donation_type=donation_type,
        method=method.strip() or None,
        notes=notes.strip() or None,
    )
    pending = None
    if upload:
        content, content_type = upload
        pending = PendingReceipt(
            bucket=get_settings().donation_receipt_bucket,
            path=donation_receipt_path(current_user.id, receipt.filename, charity_name, str(amount)),
            content=content,
            content_type=content_type,
        )
    await save_with_receipt(db, row, pending)
    log_action(db, current_user.id, "create", "donation", f"{charity_name} {amount}")
    return {"message": "Donation recorded successfully!", "donation": donation_to_dict(row)}

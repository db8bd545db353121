"""Manual transfer rail - owner-reported bank transfers decided by an admin"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...config import BILLING_BASE_CURRENCY
from ...database import atomic
from ...shared.validators import normalize_currency, utcnow
from .entitlement import get_or_create_subscription
from .errors import ConflictError, NotFoundError, ValidationError
from .renewal import renew_subscription
from .repository import BillingRepository
from .schemas import manual_report_to_dict, subscription_to_dict

logger = logging.getLogger(__name__)

MANUAL_PROVIDER = "manual"


class ManualPaymentService:
    """Service for manual (bank transfer) payment reports"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()

    def submit_report(
        self,
        owner_id: Optional[int],
        amount: Optional[float],
        currency: Optional[str],
        reference_text: Optional[str],
        proof_url: Optional[str],
    ) -> dict:
        """Record a transfer claim and flag the subscription as pending verification"""
        if not owner_id:
            raise ValidationError("ownerId requerido")
        if not reference_text and not proof_url:
            raise ValidationError("Debes enviar referencia o comprobante")

        with atomic(self.db):
            subscription = get_or_create_subscription(self.db, owner_id, for_update=True)
            report = self.repo.create_manual_report(
                self.db,
                owner_id=owner_id,
                amount=amount,
                currency=normalize_currency(currency, BILLING_BASE_CURRENCY),
                reference_text=reference_text,
                proof_url=proof_url,
            )
            self.repo.update_subscription(self.db, subscription, status="pending_verification")
            result = manual_report_to_dict(report)

        logger.info(f"📥 Manual payment report {result['id']} submitted for owner {owner_id}")
        return result

    def list_reports(self, status: Optional[str] = None) -> list:
        rows = self.repo.list_manual_reports(self.db, status=(status or "").strip() or None)
        return [manual_report_to_dict(report, name, email) for report, name, email in rows]

    def _lock_pending_report(self, report_id: int):
        report = self.repo.get_manual_report(self.db, report_id, for_update=True)
        if not report:
            raise NotFoundError("Reporte no encontrado")
        if str(report.status or "").lower() != "pending":
            raise ConflictError(
                "Este reporte ya fue procesado", details={"reportId": report.id, "status": report.status}
            )
        return report

    def approve_report(self, report_id: int, admin_id: Optional[int], now: Optional[datetime] = None) -> dict:
        """
        Approve a pending report: renew 30 days and write one ledger row.

        The report row is locked first, so a concurrent second approval waits
        and then fails with a conflict.
        """
        now = now or utcnow()
        with atomic(self.db):
            report = self._lock_pending_report(report_id)

            subscription = renew_subscription(self.db, report.owner_id, now=now)
            self.repo.create_payment(
                self.db,
                owner_id=report.owner_id,
                provider=MANUAL_PROVIDER,
                amount=report.amount,
                currency=report.currency,
                provider_payment_id=None,
                metadata={
                    "reportId": report.id,
                    "referenceText": report.reference_text,
                    "proofUrl": report.proof_url,
                    "approvedBy": admin_id,
                },
                paid_at=now,
            )

            report.status = "approved"
            report.approved_by = admin_id
            report.decided_at = now
            self.db.flush()

            result = {
                "report": manual_report_to_dict(report),
                "subscription": subscription_to_dict(subscription),
            }

        logger.info(f"✅ Manual report {report_id} approved by admin {admin_id}")
        return result

    def reject_report(self, report_id: int, admin_id: Optional[int], now: Optional[datetime] = None) -> dict:
        """Reject a pending report; the subscription is left untouched"""
        now = now or utcnow()
        with atomic(self.db):
            report = self._lock_pending_report(report_id)
            report.status = "rejected"
            report.rejected_by = admin_id
            report.decided_at = now
            self.db.flush()
            result = {"report": manual_report_to_dict(report)}

        logger.info(f"🚫 Manual report {report_id} rejected by admin {admin_id}")
        return result

"""
Reliability report and PDF export endpoints.
"""
import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from car_reliability.core.auth_dependency import get_db, get_bearer_token
from car_reliability.core.rate_limit import enforce_report_rate_limit
from car_reliability.core.timeutils import utcnow
from car_reliability.schemas.report import ReliabilityRequest, PdfRequest
from car_reliability.services import report_service
from car_reliability.services.entitlement_service import resolve_entitlement
from car_reliability.services.pdf_export_service import render_report_pdf

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Reliability"])


@router.post("/car-reliability", dependencies=[Depends(enforce_report_rate_limit)])
def car_reliability(
    request: ReliabilityRequest,
    bearer_token: Optional[str] = Depends(get_bearer_token),
    db: Session = Depends(get_db),
):
    """
    Reliability report for a vehicle.

    Entitlement comes from ``premiumToken``, then ``userToken`` or the bearer
    session token. Non-entitled callers get the free subset.
    """
    decision = resolve_entitlement(
        db,
        access_token=request.premium_token,
        session_token=request.user_token or bearer_token,
    )

    vehicle = report_service.Vehicle(
        year=request.year,
        make=request.make,
        model=request.model,
        mileage=request.mileage,
    )
    report, source = report_service.generate_report(vehicle, locale=request.locale)
    response = report_service.apply_tier(report, decision, source)

    if decision.user_id is not None:
        report_service.log_search(db, decision.user_id, vehicle, response)

    return response


def _filename_part(value) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "-", str(value)).strip("-") or "vehicle"


@router.post("/generate-pdf")
def generate_pdf(request: PdfRequest):
    pdf_bytes = render_report_pdf(
        request.year,
        request.make,
        request.model,
        request.mileage,
        request.reliability_data.model_dump(by_alias=True, exclude_none=True),
        report_date=utcnow().date(),
    )
    filename = f"{request.year}-{_filename_part(request.make)}-{_filename_part(request.model)}-reliability-report.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

"""
Alert management API endpoints
Listing, acknowledgment and resolution of threshold alerts
"""

import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import and_, desc

from app.database import get_db
from app.models.alert import Alert, AlertStatus, AlertSeverity, OPEN_ALERT_STATUSES, CLOSED_ALERT_STATUSES
from app.models.farm import User
from app.schemas.alert import AlertResponse, AlertResolve, AlertBulkResult
from app.schemas.common import Envelope, MessageResponse
from app.core.alert_engine import transition_alert
from app.core.exceptions import NotFoundError, ValidationError
from app.api.deps import get_current_active_user, get_current_editor, is_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["alerts"])


def _visible_alerts(db: Session, current_user: User):
    query = db.query(Alert)
    if not is_admin(current_user):
        query = query.filter(Alert.user_id == current_user.id)
    return query


def _newest_first(query):
    return query.order_by(desc(Alert.created_at), desc(Alert.id))


def _get_alert_or_404(alert_id: int, db: Session, current_user: User) -> Alert:
    alert = _visible_alerts(db, current_user).filter(Alert.id == alert_id).first()
    if not alert:
        raise NotFoundError("Alert not found")
    return alert


@router.get("/", response_model=Envelope[List[AlertResponse]])
async def get_alerts(
    resolved: Optional[bool] = Query(None, description="true for closed alerts, false for open ones"),
    device_id: Optional[str] = Query(None),
    severity: Optional[AlertSeverity] = Query(None),
    status: Optional[AlertStatus] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    query = _visible_alerts(db, current_user)

    if resolved is not None:
        statuses = CLOSED_ALERT_STATUSES if resolved else OPEN_ALERT_STATUSES
        query = query.filter(Alert.status.in_(statuses))

    if device_id:
        query = query.filter(Alert.device_id == device_id.strip().upper())

    if severity:
        query = query.filter(Alert.severity == severity)

    if status:
        query = query.filter(Alert.status == status)

    alerts = _newest_first(query).limit(limit).all()
    return {"success": True, "data": alerts}


@router.get("/unresolved", response_model=Envelope[List[AlertResponse]])
async def get_unresolved_alerts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    query = _visible_alerts(db, current_user).filter(Alert.status.in_(OPEN_ALERT_STATUSES))
    return {"success": True, "data": _newest_first(query).all()}


@router.get("/device/{device_id}", response_model=Envelope[List[AlertResponse]])
async def get_device_alerts(
    device_id: str,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    query = _visible_alerts(db, current_user).filter(Alert.device_id == device_id.strip().upper())
    return {"success": True, "data": _newest_first(query).limit(limit).all()}


@router.post("/resolve", response_model=Envelope[AlertBulkResult])
async def resolve_alerts(
    request: AlertResolve,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_editor)
):
    """
    Resolve several alerts at once; alerts that are missing or already closed are skipped
    """
    alerts = _visible_alerts(db, current_user).filter(Alert.id.in_(request.alert_ids)).all()
    found = {alert.id: alert for alert in alerts}

    resolved, skipped = [], []
    for alert_id in request.alert_ids:
        alert = found.get(alert_id)
        if alert is None:
            skipped.append(alert_id)
            continue
        try:
            transition_alert(alert, AlertStatus.RESOLVED, current_user.id)
            resolved.append(alert_id)
        except ValidationError:
            skipped.append(alert_id)

    db.commit()

    logger.info(f"User {current_user.id} resolved {len(resolved)} alert(s), skipped {len(skipped)}")
    return {"success": True, "data": {"resolved": resolved, "skipped": skipped}}


@router.get("/{alert_id}", response_model=Envelope[AlertResponse])
async def get_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return {"success": True, "data": _get_alert_or_404(alert_id, db, current_user)}


async def _change_status(alert_id: int, target: AlertStatus, db: Session, current_user: User) -> Alert:
    alert = _get_alert_or_404(alert_id, db, current_user)
    transition_alert(alert, target, current_user.id)
    db.commit()
    db.refresh(alert)
    logger.info(f"Alert {alert.id} {target.value} by user {current_user.id}")
    return alert


@router.patch("/{alert_id}/acknowledge", response_model=Envelope[AlertResponse])
async def acknowledge_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_editor)
):
    alert = await _change_status(alert_id, AlertStatus.ACKNOWLEDGED, db, current_user)
    return {"success": True, "data": alert}


@router.patch("/{alert_id}/resolve", response_model=Envelope[AlertResponse])
async def resolve_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_editor)
):
    alert = await _change_status(alert_id, AlertStatus.RESOLVED, db, current_user)
    return {"success": True, "data": alert}


@router.patch("/{alert_id}/dismiss", response_model=Envelope[AlertResponse])
async def dismiss_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_editor)
):
    alert = await _change_status(alert_id, AlertStatus.DISMISSED, db, current_user)
    return {"success": True, "data": alert}


@router.delete("/{alert_id}", response_model=MessageResponse)
async def delete_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_editor)
):
    alert = _get_alert_or_404(alert_id, db, current_user)
    db.delete(alert)
    db.commit()
    return {"success": True, "message": "Alert deleted"}

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hmk_backend.database import get_db
from hmk_backend.models.outreach_location import OutreachLocation
from hmk_backend.routes.common import database_unavailable, ensure_database_ready

router = APIRouter(tags=['outreach-locations'])


class OutreachLocationResponse(BaseModel):
    id: int
    name: str
    county: str
    sub_county: str | None = None
    ward: str | None = None
    address: str | None = None
    description: str | None = None
    operating_weekdays: list[int] | None = None
    slot_times: list[str] | None = None

    class Config:
        from_attributes = True


@router.get('', response_model=list[OutreachLocationResponse])
def list_outreach_locations(
    county: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    query = db.query(OutreachLocation).filter(OutreachLocation.is_active.is_(True))
    if county and county.strip():
        query = query.filter(OutreachLocation.county == county.strip())

    try:
        return query.order_by(OutreachLocation.county.asc(), OutreachLocation.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

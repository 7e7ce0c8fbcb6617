from fastapi import APIRouter, Depends, HTTPException, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import List, Optional
import logging

from database.mongodb import get_database
from models.common import UTCDateTime, utcnow
from models.discrepancy import Discrepancy, DiscrepancyCreate, DiscrepancyUpdate
from models.user import User
from routes.aircraft import get_aircraft_or_404
from services.auth_deps import get_current_user, require_editor
from services.downtime import round2
from services.queries import build_filter, date_range_query, enum_values, new_id, to_document

router = APIRouter(prefix="/api/discrepancies", tags=["discrepancies"])
logger = logging.getLogger(__name__)

UNCORRECTED_QUERY = {"date_corrected": None}


@router.post("", response_model=Discrepancy, status_code=status.HTTP_201_CREATED)
async def create_discrepancy(
    discrepancy: DiscrepancyCreate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    await get_aircraft_or_404(db, discrepancy.aircraft_id)

    now = utcnow()
    doc = to_document(
        discrepancy,
        _id=new_id(),
        ata_chapter=discrepancy.ata_chapter.strip(),
        updated_by=current_user.id,
        created_at=now,
        updated_at=now,
    )
    await db.discrepancies.insert_one(doc)

    logger.info(f"Discrepancy ATA {doc['ata_chapter']} recorded for aircraft {discrepancy.aircraft_id}")
    return Discrepancy(**doc)


@router.get("", response_model=List[Discrepancy])
async def list_discrepancies(
    aircraft_id: Optional[str] = None,
    ata_chapter: Optional[str] = None,
    corrected: Optional[bool] = None,
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    query = build_filter(aircraft_id=aircraft_id, ata_chapter=ata_chapter)
    query.update(date_range_query("date_detected", start_date, end_date))
    if corrected is True:
        query["date_corrected"] = {"$ne": None}
    elif corrected is False:
        query.update(UNCORRECTED_QUERY)

    docs = await db.discrepancies.find(query).sort("date_detected", -1).to_list(length=1000)
    return [Discrepancy(**d) for d in docs]


@router.get("/analytics/ata")
async def get_ata_analytics(
    aircraft_id: Optional[str] = None,
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    limit: Optional[int] = Query(None, ge=1),
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Discrepancy count per ATA chapter, most frequent first"""
    query = build_filter(aircraft_id=aircraft_id)
    query.update(date_range_query("date_detected", start_date, end_date))

    counts = {}
    downtime = {}
    async for doc in db.discrepancies.find(query, {"ata_chapter": 1, "downtime_hours": 1}):
        chapter = doc["ata_chapter"]
        counts[chapter] = counts.get(chapter, 0) + 1
        downtime[chapter] = downtime.get(chapter, 0.0) + (doc.get("downtime_hours") or 0)

    results = [
        {"ata_chapter": chapter, "count": count, "total_downtime_hours": round2(downtime[chapter])}
        for chapter, count in counts.items()
    ]
    results.sort(key=lambda r: (-r["count"], r["ata_chapter"]))
    return results[:limit] if limit else results


@router.get("/uncorrected/count")
async def count_uncorrected(
    aircraft_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    query = build_filter(aircraft_id=aircraft_id)
    query.update(UNCORRECTED_QUERY)
    return {"count": await db.discrepancies.count_documents(query)}


@router.get("/{discrepancy_id}", response_model=Discrepancy)
async def get_discrepancy(
    discrepancy_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    doc = await db.discrepancies.find_one({"_id": discrepancy_id})
    if not doc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Discrepancy not found"
        )
    return Discrepancy(**doc)


@router.put("/{discrepancy_id}", response_model=Discrepancy)
async def update_discrepancy(
    discrepancy_id: str,
    discrepancy_update: DiscrepancyUpdate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    update_data = enum_values(discrepancy_update.model_dump(exclude_unset=True))
    update_data["updated_by"] = current_user.id
    update_data["updated_at"] = utcnow()

    result = await db.discrepancies.update_one({"_id": discrepancy_id}, {"$set": update_data})
    if result.matched_count == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Discrepancy not found"
        )

    logger.info(f"Discrepancy {discrepancy_id} updated by {current_user.email}")
    return Discrepancy(**await db.discrepancies.find_one({"_id": discrepancy_id}))


@router.delete("/{discrepancy_id}")
async def delete_discrepancy(
    discrepancy_id: str,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    result = await db.discrepancies.delete_one({"_id": discrepancy_id})
    if result.deleted_count == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Discrepancy not found"
        )

    logger.info(f"Discrepancy {discrepancy_id} deleted by {current_user.email}")
    return {"message": "Discrepancy deleted successfully"}

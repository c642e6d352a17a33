from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func

from app.db.session import get_db
from app.api.deps import require_admin
from app.models.hall import Hall, HallImage
from app.schemas.hall import HallCreate, HallUpdate, Hall as HallSchema
from app.schemas.common import PaginatedResponse

router = APIRouter(prefix="/admin/halls", tags=["Admin - Halls"], dependencies=[Depends(require_admin)])


# ---------------------------------------------------------------------------
# Hall CRUD
# ---------------------------------------------------------------------------


@router.post("/", response_model=HallSchema, status_code=status.HTTP_201_CREATED)
def create_hall(data: HallCreate, db: Session = Depends(get_db)):
    hall = Hall(name=data.name, description=data.description)
    hall.images = [
        HallImage(image_url=url, display_order=position)
        for position, url in enumerate(data.images)
    ]
    db.add(hall)
    db.commit()
    db.refresh(hall)
    return hall


@router.get("/", response_model=PaginatedResponse[HallSchema])
def list_halls(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    total = db.query(func.count(Hall.id)).filter(Hall.is_active == True).scalar()
    halls = (
        db.query(Hall)
        .options(selectinload(Hall.images))
        .filter(Hall.is_active == True)
        .order_by(Hall.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return PaginatedResponse(
        data=[HallSchema.model_validate(hall) for hall in halls],
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


@router.patch("/{id}", response_model=HallSchema)
def update_hall(id: int, data: HallUpdate, db: Session = Depends(get_db)):
    hall = db.query(Hall).filter(Hall.id == id, Hall.is_active == True).first()
    if not hall:
        raise HTTPException(status_code=404, detail="Hall not found")

    changes = data.model_dump(exclude_unset=True)
    images = changes.pop("images", None)
    for field, value in changes.items():
        setattr(hall, field, value)
    if images is not None:
        # Replaces the whole carousel, keeping the given order
        hall.images = [
            HallImage(image_url=url, display_order=position)
            for position, url in enumerate(images)
        ]

    db.commit()
    db.refresh(hall)
    return hall


@router.delete("/{id}", status_code=status.HTTP_200_OK)
def delete_hall(id: int, db: Session = Depends(get_db)):
    """Soft delete. Availability rows stay for the audit trail."""
    hall = db.query(Hall).filter(Hall.id == id, Hall.is_active == True).first()
    if not hall:
        raise HTTPException(status_code=404, detail="Hall not found")

    hall.is_active = False
    db.commit()
    return {"id": id, "is_active": False}

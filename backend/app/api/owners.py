from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from app.db.database import get_db
from app.models.estate import Estate, OwnershipLink
from app.models.owner import Owner

router = APIRouter()


class OwnerCreate(BaseModel):
    name: str
    tax_id: str | None = None
    email: str | None = None
    address: str | None = None


class OwnerResponse(OwnerCreate):
    id: int

    model_config = {"from_attributes": True}


class EstateCreate(BaseModel):
    name: str
    address: str | None = None
    cadastral_reference: str | None = None
    is_active: bool = True


class EstateResponse(EstateCreate):
    id: int

    model_config = {"from_attributes": True}


class OwnershipCreate(BaseModel):
    owner_id: int
    ownership_percentage: float = 100

    @field_validator("ownership_percentage")
    @classmethod
    def valid_percentage(cls, v):
        if not 0 < v <= 100:
            raise ValueError("El porcentaje de propiedad debe estar entre 0 y 100.")
        return v


class OwnershipResponse(BaseModel):
    id: int
    estate_id: int
    owner_id: int
    ownership_percentage: float

    model_config = {"from_attributes": True}


def _get_owner_or_404(owner_id: int, db: Session) -> Owner:
    owner = db.query(Owner).filter(Owner.id == owner_id).first()
    if not owner:
        raise HTTPException(status_code=404, detail="Propietario no encontrado.")
    return owner


def _get_estate_or_404(estate_id: int, db: Session) -> Estate:
    estate = db.query(Estate).filter(Estate.id == estate_id).first()
    if not estate:
        raise HTTPException(status_code=404, detail="Inmueble no encontrado.")
    return estate


@router.get("/", response_model=list[OwnerResponse])
def list_owners(db: Session = Depends(get_db)):
    return db.query(Owner).order_by(Owner.id).all()


@router.post("/", response_model=OwnerResponse, status_code=status.HTTP_201_CREATED)
def create_owner(data: OwnerCreate, db: Session = Depends(get_db)):
    owner = Owner(**data.model_dump())
    db.add(owner)
    db.commit()
    db.refresh(owner)
    return owner


@router.get("/estates", response_model=list[EstateResponse])
def list_estates(db: Session = Depends(get_db)):
    return db.query(Estate).order_by(Estate.id).all()


@router.post("/estates", response_model=EstateResponse, status_code=status.HTTP_201_CREATED)
def create_estate(data: EstateCreate, db: Session = Depends(get_db)):
    estate = Estate(**data.model_dump())
    db.add(estate)
    db.commit()
    db.refresh(estate)
    return estate


@router.get("/estates/{estate_id}/owners", response_model=list[OwnershipResponse])
def list_estate_owners(estate_id: int, db: Session = Depends(get_db)):
    _get_estate_or_404(estate_id, db)
    return db.query(OwnershipLink).filter(OwnershipLink.estate_id == estate_id).all()


@router.post(
    "/estates/{estate_id}/owners",
    response_model=OwnershipResponse,
    status_code=status.HTTP_201_CREATED,
)
def link_owner(estate_id: int, data: OwnershipCreate, db: Session = Depends(get_db)):
    _get_estate_or_404(estate_id, db)
    _get_owner_or_404(data.owner_id, db)
    existing = (
        db.query(OwnershipLink)
        .filter(OwnershipLink.estate_id == estate_id, OwnershipLink.owner_id == data.owner_id)
        .first()
    )
    if existing:
        raise HTTPException(status_code=409, detail="El propietario ya está vinculado a este inmueble.")
    link = OwnershipLink(estate_id=estate_id, **data.model_dump())
    db.add(link)
    db.commit()
    db.refresh(link)
    return link


@router.get("/{owner_id}", response_model=OwnerResponse)
def get_owner(owner_id: int, db: Session = Depends(get_db)):
    return _get_owner_or_404(owner_id, db)

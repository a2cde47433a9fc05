from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from app.db.database import get_db
from app.models.counterparty import Client, Supplier

router = APIRouter()


class CounterpartyCreate(BaseModel):
    name: str
    tax_id: str | None = None
    email: str | None = None
    address: str | None = None
    payment_terms: int | None = None

    @field_validator("payment_terms")
    @classmethod
    def valid_terms(cls, v):
        if v is not None and v < 0:
            raise ValueError("Los días de pago no pueden ser negativos.")
        return v


class CounterpartyResponse(CounterpartyCreate):
    id: int

    model_config = {"from_attributes": True}


@router.get("/clients", response_model=list[CounterpartyResponse])
def list_clients(db: Session = Depends(get_db)):
    return db.query(Client).order_by(Client.name).all()


@router.post("/clients", response_model=CounterpartyResponse, status_code=status.HTTP_201_CREATED)
def create_client(data: CounterpartyCreate, db: Session = Depends(get_db)):
    client = Client(**data.model_dump())
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


@router.get("/suppliers", response_model=list[CounterpartyResponse])
def list_suppliers(db: Session = Depends(get_db)):
    return db.query(Supplier).order_by(Supplier.name).all()


@router.post("/suppliers", response_model=CounterpartyResponse, status_code=status.HTTP_201_CREATED)
def create_supplier(data: CounterpartyCreate, db: Session = Depends(get_db)):
    supplier = Supplier(**data.model_dump(exclude_none=True))
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return supplier


@router.get("/suppliers/{supplier_id}", response_model=CounterpartyResponse)
def get_supplier(supplier_id: int, db: Session = Depends(get_db)):
    supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first()
    if not supplier:
        raise HTTPException(status_code=404, detail="Proveedor no encontrado.")
    return supplier

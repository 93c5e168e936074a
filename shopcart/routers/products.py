from typing import List
from fastapi import APIRouter, Depends
from sqlmodel import Session

from shopcart.db.session import get_session
from shopcart.models.product import ProductOut
from shopcart.services.catalog import CatalogService

router = APIRouter()


def get_catalog(session: Session = Depends(get_session)) -> CatalogService:
    return CatalogService(session)


@router.get("/", response_model=List[ProductOut])
def read_products(catalog: CatalogService = Depends(get_catalog)):
    return catalog.list_products()

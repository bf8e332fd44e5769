"""
api/routes/products.py -- Product catalog REST endpoints.

Routes:
  GET    /api/products        -- list all products (?category= narrows the list)
  POST   /api/products        -- create a product owned by the caller (201)
  GET    /api/products/{id}   -- product detail; 404 if missing
  PUT    /api/products/{id}   -- update one of the caller's products; 404 otherwise
  DELETE /api/products/{id}   -- delete one of the caller's products; 404 otherwise

Every route is behind ApiGate; the caller's identity comes from
request.state via get_identity().
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.models import ProductCreate, ProductData, ProductUpdate, success
from auth.dependencies import get_identity
from auth.models import AuthenticatedIdentity
from catalog.models import Product
from catalog.store import ProductStore

router = APIRouter()


def _store(request: Request) -> ProductStore:
    return request.app.state.products


@router.get("/products")
def list_products(
    request: Request,
    category: Optional[str] = None,
    identity: AuthenticatedIdentity = Depends(get_identity),
) -> dict:
    products = _store(request).list_products(category=category)
    return success("OK", [ProductData.from_product(p).model_dump() for p in products])


@router.post("/products", status_code=201)
def create_product(
    request: Request,
    body: ProductCreate,
    identity: AuthenticatedIdentity = Depends(get_identity),
) -> JSONResponse:
    store = _store(request)
    product_id = store.create_product(
        Product(
            owner_id=identity.account.id,
            name=body.name,
            description=body.description,
            price=body.price,
            category=body.category,
            condition=body.condition,
            image_url=body.image_url,
        )
    )
    created = store.get_product(product_id)
    return JSONResponse(
        status_code=201,
        content=success("Product created.", ProductData.from_product(created).model_dump()),
    )


@router.get("/products/{product_id}")
def get_product(
    request: Request,
    product_id: int,
    identity: AuthenticatedIdentity = Depends(get_identity),
) -> dict:
    product = _store(request).get_product(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found.")
    return success("OK", ProductData.from_product(product).model_dump())


@router.put("/products/{product_id}")
def update_product(
    request: Request,
    product_id: int,
    body: ProductUpdate,
    identity: AuthenticatedIdentity = Depends(get_identity),
) -> dict:
    """Change some fields of one of the caller's products.

    Fields left out of the body keep their value. As with DELETE, someone
    else's product answers 404.
    """
    store = _store(request)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if not store.update_product(product_id, identity.account.id, **changes):
        raise HTTPException(status_code=404, detail="Product not found.")
    return success("Product updated.", ProductData.from_product(store.get_product(product_id)).model_dump())


@router.delete("/products/{product_id}")
def delete_product(
    request: Request,
    product_id: int,
    identity: AuthenticatedIdentity = Depends(get_identity),
) -> dict:
    """Delete a product. Ownership is checked in the store's WHERE clause.

    Someone else's product answers 404, not 403, so IDs of other sellers'
    listings cannot be probed for ownership.
    """
    if not _store(request).delete_product(product_id, identity.account.id):
        raise HTTPException(status_code=404, detail="Product not found.")
    return success("Product deleted.")

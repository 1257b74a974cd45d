import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request, status

from vendorconnect.auth.models import CurrentUser
from vendorconnect.auth.repository import UserRepository
from vendorconnect.auth.schemas import SupplierSummary
from vendorconnect.catalog.models import Category, ProductDB
from vendorconnect.catalog.repository import ProductRepository
from vendorconnect.catalog.schemas import (
    ProductCreate, ProductListResponse, ProductQuery, ProductResponse, ProductUpdate, SortField, SortOrder
)
from vendorconnect.deps import get_product_repository, get_user_repository, require_supplier
from vendorconnect.shared.security_config import limiter
from vendorconnect.shared.utils import NotFoundException, SuccessResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])

async def with_suppliers(products: List[ProductDB], users: UserRepository) -> List[ProductResponse]:
    suppliers = await users.get_many(p.supplier_id for p in products)
    responses = []
    for product in products:
        supplier = suppliers.get(product.supplier_id)
        summary = SupplierSummary.from_db(supplier) if supplier else None
        responses.append(ProductResponse.from_db(product, summary))
    return responses

@router.get("", response_model=SuccessResponse[ProductListResponse])
@limiter.limit("60/minute")
async def list_products(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[Category] = None,
    supplier_id: Optional[str] = None,
    search: Optional[str] = None,
    location: Optional[str] = None,
    in_stock_only: bool = True,
    sort_by: SortField = SortField.CREATED_AT,
    sort_order: SortOrder = SortOrder.DESC,
    products: ProductRepository = Depends(get_product_repository),
    users: UserRepository = Depends(get_user_repository),
):
    query = ProductQuery(
        category=category,
        supplier_id=supplier_id,
        search=search,
        location=location,
        in_stock_only=in_stock_only,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    located = await users.find_supplier_ids_by_location(query.location) if query.location else None
    items, total = await products.query(query, located)
    return SuccessResponse(data=ProductListResponse(
        products=await with_suppliers(items, users), total=total, page=page, limit=limit
    ))

@router.get("/category/{category}", response_model=SuccessResponse[ProductListResponse])
async def list_products_by_category(
    category: Category,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    products: ProductRepository = Depends(get_product_repository),
    users: UserRepository = Depends(get_user_repository),
):
    items, total = await products.find_by_category(category, page, limit)
    return SuccessResponse(data=ProductListResponse(
        products=await with_suppliers(items, users), total=total, page=page, limit=limit
    ))

@router.get("/my/products", response_model=SuccessResponse[ProductListResponse])
async def list_my_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: CurrentUser = Depends(require_supplier),
    products: ProductRepository = Depends(get_product_repository),
    users: UserRepository = Depends(get_user_repository),
):
    items, total = await products.find_by_supplier(user.user_id, page, limit)
    return SuccessResponse(data=ProductListResponse(
        products=await with_suppliers(items, users), total=total, page=page, limit=limit
    ))

@router.get("/{product_id}", response_model=SuccessResponse[ProductResponse])
async def get_product(
    product_id: str,
    products: ProductRepository = Depends(get_product_repository),
    users: UserRepository = Depends(get_user_repository),
):
    product = await products.get(product_id)
    if not product:
        raise NotFoundException(f"Product {product_id} not found")
    [response] = await with_suppliers([product], users)
    return SuccessResponse(data=response)

@router.post("", response_model=SuccessResponse[ProductResponse], status_code=status.HTTP_201_CREATED)
async def create_product(
    product: ProductCreate,
    user: CurrentUser = Depends(require_supplier),
    products: ProductRepository = Depends(get_product_repository),
    users: UserRepository = Depends(get_user_repository),
):
    created = await products.insert(ProductDB(supplier_id=user.user_id, **product.model_dump()))
    logger.info("Product added", extra={"product_id": created.id, "supplier_id": user.user_id})
    [response] = await with_suppliers([created], users)
    return SuccessResponse(data=response, message="Product added successfully")

@router.put("/{product_id}", response_model=SuccessResponse[ProductResponse])
async def update_product(
    product_id: str,
    update: ProductUpdate,
    user: CurrentUser = Depends(require_supplier),
    products: ProductRepository = Depends(get_product_repository),
    users: UserRepository = Depends(get_user_repository),
):
    changes = update.model_dump(exclude_none=True)
    updated = await products.update(product_id, user.user_id, changes)
    if not updated:
        raise NotFoundException("Product not found or you are not authorized to edit it")
    [response] = await with_suppliers([updated], users)
    return SuccessResponse(data=response, message="Product updated successfully")

@router.delete("/{product_id}", response_model=SuccessResponse[dict])
async def delete_product(
    product_id: str,
    user: CurrentUser = Depends(require_supplier),
    products: ProductRepository = Depends(get_product_repository),
):
    if not await products.delete(product_id, user.user_id):
        raise NotFoundException("Product not found or you are not authorized to delete it")
    logger.info("Product deleted", extra={"product_id": product_id, "supplier_id": user.user_id})
    return SuccessResponse(message="Product deleted successfully")

"""Customer, distributor, corporate and admin routes."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from castolin.customers.service import CORPORATE, DISTRIBUTOR, CustomerService
from castolin.responses import ItemResponse, ListResponse, UpdateResponse
from castolin.routes.deps import get_session, get_write_session

router = APIRouter(tags=["Customers"])


async def get_customer_service(session: AsyncSession = Depends(get_session)) -> CustomerService:
    """Dependency to get customer service for reads."""
    return CustomerService(session)


async def get_customer_write_service(session: AsyncSession = Depends(get_write_session)) -> CustomerService:
    """Dependency to get customer service inside a committed transaction."""
    return CustomerService(session)


async def _get_profile(service: CustomerService, customer_code: str, label: str) -> ItemResponse:
    try:
        customer = await service.get_customer(customer_code)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return ItemResponse(data=customer)


async def _update_profile(
    service: CustomerService, customer_code: str, updates: dict[str, Any], label: str
) -> UpdateResponse:
    try:
        affected = await service.update_profile(customer_code, updates)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if affected == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return UpdateResponse(message=f"{label} updated successfully", affectedRows=affected)


# =============================================================================
# Customers
# =============================================================================


@router.get("/customer", response_model=ListResponse)
async def list_customers(service: CustomerService = Depends(get_customer_service)):
    """List all customers ordered by name."""
    return ListResponse.of(await service.list_customers())


@router.get("/customer/{customer_code}", response_model=ItemResponse)
async def get_customer(customer_code: str, service: CustomerService = Depends(get_customer_service)):
    """Get a customer by code."""
    return await _get_profile(service, customer_code, "Customer")


# =============================================================================
# Distributors
# =============================================================================


@router.get("/distributors", response_model=ListResponse)
async def list_distributors(service: CustomerService = Depends(get_customer_service)):
    """List customers of type distributor."""
    return ListResponse.of(await service.list_by_type(DISTRIBUTOR))


@router.get("/distributors/{customer_code}", response_model=ItemResponse)
async def get_distributor(customer_code: str, service: CustomerService = Depends(get_customer_service)):
    """Get a distributor profile."""
    return await _get_profile(service, customer_code, "Distributor")


@router.put("/distributors/{customer_code}", response_model=UpdateResponse)
async def update_distributor(
    customer_code: str,
    updates: dict[str, Any] = Body(default_factory=dict),
    service: CustomerService = Depends(get_customer_write_service),
):
    """
    Update a distributor profile.

    Writable fields: customer_name, mobile_number, email, customer_type, role, status.
    Other keys are ignored.
    """
    return await _update_profile(service, customer_code, updates, "Distributor")


# =============================================================================
# Corporates
# =============================================================================


@router.get("/corporates", response_model=ListResponse)
async def list_corporates(service: CustomerService = Depends(get_customer_service)):
    """List direct (corporate) customers."""
    return ListResponse.of(await service.list_by_type(CORPORATE))


@router.get("/corporates/{customer_code}", response_model=ItemResponse)
async def get_corporate(customer_code: str, service: CustomerService = Depends(get_customer_service)):
    """Get a corporate profile."""
    return await _get_profile(service, customer_code, "Corporate")


@router.put("/corporates/{customer_code}", response_model=UpdateResponse)
async def update_corporate(
    customer_code: str,
    updates: dict[str, Any] = Body(default_factory=dict),
    service: CustomerService = Depends(get_customer_write_service),
):
    """Update a corporate profile (same writable fields as distributors)."""
    return await _update_profile(service, customer_code, updates, "Corporate")


# =============================================================================
# Admins
# =============================================================================


@router.get("/admins", response_model=ListResponse)
async def list_admins(service: CustomerService = Depends(get_customer_service)):
    """List all admins."""
    return ListResponse.of(await service.list_admins())


@router.get("/admins/{admin_id}", response_model=ItemResponse)
async def get_admin(admin_id: int, service: CustomerService = Depends(get_customer_service)):
    """Get an admin by id."""
    admin = await service.get_admin(admin_id)
    if not admin:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Admin not found")
    return ItemResponse(data=admin)

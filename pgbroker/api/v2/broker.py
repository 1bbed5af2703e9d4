"""
Open Service Broker API endpoints
"""
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ...core.auth import get_broker, require_platform
from ...services.broker import ServiceBroker
from ...services.broker.errors import (
    BindingNotFound, BrokerError, InstanceAlreadyExists, InstanceNotFound,
    InstanceNotReady, InvalidPlan, UpdateNotSupported
)


router = APIRouter(prefix="/v2", tags=["broker"], dependencies=[Depends(require_platform)])


# Request/Response Models
class ProvisionRequest(BaseModel):
    """Request model for instance provisioning"""
    service_id: str
    plan_id: str
    organization_guid: Optional[str] = None
    space_guid: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None


class UpdateRequest(BaseModel):
    """Request model for instance update"""
    service_id: Optional[str] = None
    plan_id: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None


class BindRequest(BaseModel):
    """Request model for binding creation"""
    service_id: Optional[str] = None
    plan_id: Optional[str] = None
    app_guid: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None


class LastOperationResponse(BaseModel):
    """Response model for last operation polling"""
    state: str
    description: Optional[str] = None


class BindingResponse(BaseModel):
    """Response model for a new binding"""
    credentials: Dict[str, Any]


def error_response(status_code: int, error: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"description": str(error)})


def broker_error_response(error: BrokerError) -> JSONResponse:
    """Map a broker exception to a protocol response"""
    if isinstance(error, InvalidPlan):
        return error_response(status.HTTP_400_BAD_REQUEST, error)
    if isinstance(error, (InstanceNotFound, BindingNotFound)):
        return error_response(status.HTTP_404_NOT_FOUND, error)
    if isinstance(error, InstanceAlreadyExists):
        return error_response(status.HTTP_409_CONFLICT, error)
    if isinstance(error, InstanceNotReady):
        return error_response(422, error)
    if isinstance(error, UpdateNotSupported):
        return error_response(status.HTTP_501_NOT_IMPLEMENTED, error)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, error)


@router.get("/catalog")
async def get_catalog(broker: ServiceBroker = Depends(get_broker)):
    """
    Describe the single service and plan this broker offers
    """
    return broker.catalog()


@router.put("/service_instances/{instance_id}", status_code=status.HTTP_202_ACCEPTED)
async def provision_instance(
    instance_id: str,
    request: ProvisionRequest,
    broker: ServiceBroker = Depends(get_broker)
):
    """
    Provision a new database instance (asynchronously)
    """
    try:
        await broker.provision(instance_id, request.service_id, request.plan_id)
    except BrokerError as e:
        return broker_error_response(e)

    return {"operation": "provision"}


@router.patch("/service_instances/{instance_id}")
async def update_instance(
    instance_id: str,
    request: UpdateRequest,
    broker: ServiceBroker = Depends(get_broker)
):
    """
    Update a database instance (not supported)
    """
    try:
        await broker.update(instance_id)
    except BrokerError as e:
        return broker_error_response(e)

    return {}


@router.delete("/service_instances/{instance_id}", status_code=status.HTTP_202_ACCEPTED)
async def deprovision_instance(
    instance_id: str,
    broker: ServiceBroker = Depends(get_broker)
):
    """
    Tear down a database instance (asynchronously)
    """
    try:
        accepted = await broker.deprovision(instance_id)
    except BrokerError as e:
        return broker_error_response(e)

    if not accepted:
        return JSONResponse(status_code=status.HTTP_410_GONE, content={})
    return {"operation": "deprovision"}


@router.get(
    "/service_instances/{instance_id}/last_operation",
    response_model=LastOperationResponse
)
async def get_last_operation(
    instance_id: str,
    broker: ServiceBroker = Depends(get_broker)
):
    """
    Report how the instance's provision/deprovision is progressing
    """
    state = await broker.last_operation(instance_id)
    return LastOperationResponse(state=state.value)


@router.put(
    "/service_instances/{instance_id}/service_bindings/{binding_id}",
    status_code=status.HTTP_201_CREATED,
    response_model=BindingResponse
)
async def bind_instance(
    instance_id: str,
    binding_id: str,
    request: Optional[BindRequest] = None,
    broker: ServiceBroker = Depends(get_broker)
):
    """
    Issue credentials for an application
    """
    try:
        credentials = await broker.bind(instance_id, binding_id)
    except BrokerError as e:
        return broker_error_response(e)

    return BindingResponse(credentials=credentials.to_dict())


@router.delete("/service_instances/{instance_id}/service_bindings/{binding_id}")
async def unbind_instance(
    instance_id: str,
    binding_id: str,
    broker: ServiceBroker = Depends(get_broker)
):
    """
    Revoke an application's credentials
    """
    try:
        await broker.unbind(instance_id, binding_id)
    except BrokerError as e:
        return broker_error_response(e)

    return {}

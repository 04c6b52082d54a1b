import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from fanclub.core.responses import success_response
from fanclub.core.types import ModelCreateRequest, ModelUpdateRequest
from fanclub.data import models as models_data
from fanclub.routes.deps import plan_of, rate_limited, track_request
from fanclub.services.plans import can_add_model, remaining_models

router = APIRouter(prefix="/api")
log = logging.getLogger("fanclub.models")


@router.get("/models")
def list_models(request: Request, user=Depends(rate_limited("RL_LIST_PER_MIN", "list"))):
    user_id = user["user_id"]
    rows = models_data.list_models(user_id)
    track_request(request, user_id)
    return success_response(
        {"models": rows, "remaining": remaining_models(len(rows), plan_of(user_id))}
    )


@router.post("/models", status_code=201)
def create_model(
    body: ModelCreateRequest,
    request: Request,
    user=Depends(rate_limited("RL_SAVE_PER_MIN", "save")),
):
    user_id = user["user_id"]
    if not can_add_model(models_data.count_models(user_id), plan_of(user_id)):
        raise HTTPException(status_code=403, detail="Model limit reached for your plan")
    row = models_data.create_model(user_id, body.name, body.displayName, body.description)
    log.info("model created user=%s id=%s", user_id, row["id"])
    track_request(request, user_id)
    return success_response(row, 201)


@router.patch("/models/{model_id}")
def update_model(
    model_id: str,
    body: ModelUpdateRequest,
    request: Request,
    user=Depends(rate_limited("RL_SAVE_PER_MIN", "save")),
):
    user_id = user["user_id"]
    if not models_data.get_model(user_id, model_id):
        raise HTTPException(status_code=404, detail="Model not found")
    row = models_data.update_model(
        user_id,
        model_id,
        name=body.name,
        display_name=body.displayName,
        description=body.description,
        status=body.status,
    )
    track_request(request, user_id)
    return success_response(row)


@router.delete("/models/{model_id}")
def delete_model(
    model_id: str,
    request: Request,
    user=Depends(rate_limited("RL_DELETE_PER_MIN", "delete")),
):
    user_id = user["user_id"]
    if not models_data.delete_model(user_id, model_id):
        raise HTTPException(status_code=404, detail="Model not found")
    log.info("model deleted user=%s id=%s", user_id, model_id)
    track_request(request, user_id)
    return success_response({"deleted": True})

"""Pick-up selector preference routes."""
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.checkin.cascade import FIELD_NAMES, FieldConfig, field_label
from app.checkin.service import load_field_config, save_field_config
from app.core.database import get_session

router = APIRouter(prefix="/preferences", tags=["preferences"])


def get_field_config(session: Session = Depends(get_session)) -> FieldConfig:
    """Dependency providing the pick-up field configuration for this request."""
    return load_field_config(session)


def _config_payload(config: FieldConfig) -> dict:
    return {
        "entries": [
            {**entry.model_dump(), "label": field_label(entry.name)}
            for entry in config.entries
        ],
        "fieldOrder": config.field_order(),
        "availableFields": list(FIELD_NAMES),
    }


@router.get("/pickup-fields")
async def read_pickup_fields(config: FieldConfig = Depends(get_field_config)):
    """
    Get the pick-up selector field configuration.

    Returns every configured field with its inclusion flag, plus the
    resulting cascade order.
    """
    return _config_payload(config)


@router.put("/pickup-fields")
async def update_pickup_fields(
    config: FieldConfig,
    session: Session = Depends(get_session),
):
    """
    Replace the pick-up selector field configuration.

    List order becomes cascade order. Unknown or repeated fields are
    rejected with 422.
    """
    return _config_payload(save_field_config(session, config))

from fastapi import APIRouter, Depends, HTTPException
import logging

from ..application.ports.identity_provider import Identity
from ..application.services.doctor_service import DoctorService
from ..exceptions import AppError, create_success_response
from ..schemas.doctors import DoctorProfileUpdate, DoctorResponse
from .deps import get_doctor, get_doctor_service, get_identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/doctors", tags=["Doctors"])


@router.put("/me")
def update_doctor_profile(
    body: DoctorProfileUpdate,
    doctor: Identity = Depends(get_doctor),
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    try:
        profile = doctor_service.update_profile(doctor.id, body.name, body.email, body.specialization)
        return create_success_response(
            message="Doctor profile updated",
            doctor=DoctorResponse.from_dto(profile).model_dump(mode="json"),
        )
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error updating doctor profile {doctor.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update doctor profile")


@router.get("/{doctor_id}")
def get_doctor_profile(
    doctor_id: str,
    caller: Identity = Depends(get_identity),
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    try:
        profile = doctor_service.get_profile(doctor_id)
        return create_success_response(doctor=DoctorResponse.from_dto(profile).model_dump(mode="json"))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving doctor {doctor_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve doctor")

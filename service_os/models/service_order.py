from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ServiceOrderStatus(str, Enum):
    """Status da ordem de serviço. ACCEPTED e CANCELLED são finais."""
    DRAFT = "DRAFT"
    SENT_FOR_QUOTES = "SENT_FOR_QUOTES"
    QUOTED = "QUOTED"
    ACCEPTED = "ACCEPTED"
    CANCELLED = "CANCELLED"


STATUS_LABELS = {
    ServiceOrderStatus.DRAFT: "Rascunho",
    ServiceOrderStatus.SENT_FOR_QUOTES: "Enviada para cotação",
    ServiceOrderStatus.QUOTED: "Cotada",
    ServiceOrderStatus.ACCEPTED: "Aceita",
    ServiceOrderStatus.CANCELLED: "Cancelada",
}


class VehicleType(str, Enum):
    CAR = "CAR"
    TRUCK = "TRUCK"
    VAN = "VAN"
    MOTORCYCLE = "MOTORCYCLE"
    BUS = "BUS"
    OTHER = "OTHER"


class FuelType(str, Enum):
    GASOLINE = "GASOLINE"
    ETHANOL = "ETHANOL"
    DIESEL = "DIESEL"
    FLEX = "FLEX"
    ELECTRIC = "ELECTRIC"
    HYBRID = "HYBRID"


class TransmissionType(str, Enum):
    MANUAL = "MANUAL"
    AUTOMATIC = "AUTOMATIC"
    SEMI_AUTOMATIC = "SEMI_AUTOMATIC"


class ServiceType(str, Enum):
    MAINTENANCE = "MAINTENANCE"
    REPAIR = "REPAIR"
    INSPECTION = "INSPECTION"
    OTHER = "OTHER"


class ServiceCategory(str, Enum):
    MECHANICAL = "MECHANICAL"
    ELECTRICAL = "ELECTRICAL"
    BODY_WORK = "BODY_WORK"
    PAINTING = "PAINTING"
    TIRE = "TIRE"
    GLASS = "GLASS"
    OTHER = "OTHER"


class Vehicle(BaseModel):
    type: VehicleType
    brand: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    year: int = Field(..., ge=1900, le=date.today().year + 1)
    license_plate: str = Field(..., min_length=1)
    fuel: Optional[FuelType] = None
    transmission: Optional[TransmissionType] = None
    color: Optional[str] = None
    engine: Optional[str] = None
    chassis: Optional[str] = None
    km: float = Field(0, ge=0)
    market_value: float = Field(0, ge=0)
    registration: Optional[str] = None
    tank_capacity: float = Field(0, ge=0)


class ServiceInfo(BaseModel):
    type: ServiceType
    category: Optional[ServiceCategory] = None
    city: str = Field(..., min_length=1)
    vehicle_location: Optional[str] = None
    notes: Optional[str] = None


# Campos do formulário HTML -> campos do objeto Vehicle
VEHICLE_FORM_FIELDS = {
    "vehicle_type": "type",
    "brand": "brand",
    "model": "model",
    "year": "year",
    "license_plate": "license_plate",
    "fuel": "fuel",
    "transmission": "transmission",
    "color": "color",
    "engine": "engine",
    "chassis": "chassis",
    "km": "km",
    "vehicle_market_value": "market_value",
    "registration": "registration",
    "tank_capacity": "tank_capacity",
}

SERVICE_INFO_FORM_FIELDS = {
    "service_type": "type",
    "service_category": "category",
    "service_city": "city",
    "vehicle_location": "vehicle_location",
    "notes": "notes",
}


class ServiceOrderForm(BaseModel):
    vehicle: Vehicle
    service_info: ServiceInfo

    @classmethod
    def from_form(cls, form) -> "ServiceOrderForm":
        def pick(mapping):
            return {
                target: form.get(source)
                for source, target in mapping.items()
                if form.get(source) not in (None, "")
            }

        vehicle = pick(VEHICLE_FORM_FIELDS)
        if "license_plate" in vehicle:
            # Padroniza a placa
            vehicle["license_plate"] = vehicle["license_plate"].upper().strip()
        return cls.model_validate({"vehicle": vehicle, "service_info": pick(SERVICE_INFO_FORM_FIELDS)})

    def to_record(self) -> dict:
        return {
            "vehicle": self.vehicle.model_dump(mode="json"),
            "service_info": self.service_info.model_dump(mode="json"),
        }

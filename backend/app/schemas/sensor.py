from pydantic import BaseModel, validator
from typing import Optional

from .auth import clean_phone


class SensorCreate(BaseModel):
    devEUI: str
    deviceName: str
    village: Optional[str] = None
    panchayat: Optional[str] = None
    phone: Optional[str] = None  # maps the sensor to the villager with this phone
    
    @validator('devEUI', 'deviceName')
    def validate_required(cls, v):
        if not v or not v.strip():
            raise ValueError('devEUI and deviceName are required')
        return v.strip()
    
    @validator('phone')
    def validate_phone(cls, v):
        if not v:
            return None
        return clean_phone(v)


class SensorUpdate(BaseModel):
    deviceName: Optional[str] = None
    village: Optional[str] = None
    panchayat: Optional[str] = None
    phone: Optional[str] = None  # empty or missing removes the mapping
    
    @validator('phone')
    def validate_phone(cls, v):
        if not v:
            return None
        return clean_phone(v)

from pydantic import BaseModel, validator
from typing import Optional

from .auth import clean_aadhaar, clean_phone


class VillagerCreate(BaseModel):
    aadhaarNumber: str
    name: str
    phone: str
    village: str
    panchayat: str
    occupation: Optional[str] = None
    address: Optional[str] = None
    
    @validator('aadhaarNumber')
    def validate_aadhaar(cls, v):
        return clean_aadhaar(v)
    
    @validator('phone')
    def validate_phone(cls, v):
        return clean_phone(v)
    
    @validator('name', 'village', 'panchayat')
    def validate_required(cls, v):
        if not v or not v.strip():
            raise ValueError('Missing required fields')
        return v.strip()


class VillagerUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    village: Optional[str] = None
    panchayat: Optional[str] = None
    occupation: Optional[str] = None
    address: Optional[str] = None
    
    @validator('phone')
    def validate_phone(cls, v):
        if v is None:
            return v
        return clean_phone(v)
    
    @validator('name', 'village', 'panchayat')
    def validate_not_blank(cls, v):
        if v is None:
            return v
        if not v.strip():
            raise ValueError('Name, village and panchayat cannot be empty')
        return v.strip()

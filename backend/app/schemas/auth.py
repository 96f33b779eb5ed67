from pydantic import BaseModel, validator
from typing import Optional
from datetime import datetime
import re

ADMIN_ROLE = "admin"
VILLAGER_ROLE = "villager"


# Claims carried by an admin or villager session
class SessionClaims(BaseModel):
    role: str
    subject: str  # admin username or villager phone
    issued_at: datetime
    expires_at: datetime
    villager_id: Optional[int] = None
    name: Optional[str] = None
    village: Optional[str] = None
    panchayat: Optional[str] = None
    
    @validator('role')
    def validate_role(cls, v):
        if v not in (ADMIN_ROLE, VILLAGER_ROLE):
            raise ValueError(f'Unknown role: {v}')
        return v
    
    def public_dict(self) -> dict:
        data = {
            "role": self.role,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }
        if self.role == ADMIN_ROLE:
            data["username"] = self.subject
        else:
            data.update({
                "id": self.villager_id,
                "phone": self.subject,
                "name": self.name,
                "village": self.village,
                "panchayat": self.panchayat,
            })
        return data


def clean_phone(v: Optional[str]) -> str:
    phone = (v or '').strip()
    if not re.match(r'^\d{10}$', phone):
        raise ValueError('Please enter valid 10-digit phone number')
    return phone


def clean_aadhaar(v: Optional[str]) -> str:
    aadhaar = (v or '').replace(' ', '').replace('-', '')
    if not re.match(r'^\d{12}$', aadhaar):
        raise ValueError('Please enter valid 12-digit Aadhaar number')
    return aadhaar


# Aadhaar login
class AadhaarLogin(BaseModel):
    aadhaarNumber: str
    
    @validator('aadhaarNumber')
    def validate_aadhaar(cls, v):
        return clean_aadhaar(v)


# Phone check / send OTP / resend OTP
class PhoneRequest(BaseModel):
    phone: str
    
    @validator('phone')
    def validate_phone(cls, v):
        return clean_phone(v)


# OTP Verify
class OTPVerify(BaseModel):
    phone: str
    otp: str
    
    @validator('phone')
    def validate_phone(cls, v):
        return clean_phone(v)
    
    @validator('otp')
    def validate_otp(cls, v):
        if not v or not v.strip():
            raise ValueError('Phone number and OTP are required')
        return v.strip()


# Username/password admin login
class AdminLogin(BaseModel):
    username: str
    password: str

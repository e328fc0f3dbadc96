from pydantic import BaseModel, EmailStr, Field, field_validator


class CustomerDetailsForm(BaseModel):
    customer_identifier: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(min_length=1, max_length=50)
    job_role: str = Field(min_length=1, max_length=100)
    company: str = Field(min_length=1, max_length=255)
    country: str = Field(min_length=1, max_length=100)

    @field_validator("customer_identifier", "name", "phone", "job_role", "company", "country", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

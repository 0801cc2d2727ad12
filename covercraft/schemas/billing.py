"""
Pydantic schemas for billing endpoints.
"""
from pydantic import BaseModel, Field


class CheckoutSessionResponse(BaseModel):
    """Response schema for checkout session creation."""
    url: str = Field(..., description="Stripe checkout session URL")

    model_config = {
        "json_schema_extra": {
            "example": {"url": "https://checkout.stripe.com/c/pay/cs_test_..."}
        }
    }

# models/billing.py

from typing import Optional
from pydantic import BaseModel, Field


class CheckoutRequest(BaseModel):
    price_id: Optional[str] = Field(None, alias="priceId")

    model_config = {"populate_by_name": True}


class SubscriptionUpdateRequest(BaseModel):
    new_price_id: Optional[str] = Field(None, alias="newPriceId")
    proration_behavior: str = Field("create_prorations", alias="prorationBehavior")

    model_config = {"populate_by_name": True}


class RefundRequest(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    reason: Optional[str] = None
    subscription_id: Optional[str] = Field(None, alias="subscriptionId")

    model_config = {"populate_by_name": True}

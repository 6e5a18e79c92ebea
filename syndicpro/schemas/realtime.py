from pydantic import BaseModel, Field, model_validator
from typing import Literal, Optional


class ClientCommand(BaseModel):
    """A message sent by a /realtime client."""
    action: Literal["toggle", "set_year"]
    payment_id: Optional[int] = None
    year: Optional[int] = Field(None, ge=2000, le=2100)

    @model_validator(mode="after")
    def check_arguments(self) -> "ClientCommand":
        if self.action == "toggle" and self.payment_id is None:
            raise ValueError("toggle needs payment_id")
        if self.action == "set_year" and self.year is None:
            raise ValueError("set_year needs year")
        return self

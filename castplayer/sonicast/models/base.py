from pydantic import BaseModel, ConfigDict


class SonicastModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra='allow'
    )

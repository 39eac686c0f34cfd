from pydantic import BaseModel, ConfigDict


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class FrozenModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

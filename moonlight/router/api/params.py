from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ModelInfo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    model_name: str


class GetModelsResponse(BaseModel):
    models: list[ModelInfo]
    default: str

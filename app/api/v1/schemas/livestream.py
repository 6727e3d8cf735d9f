from pydantic import BaseModel, ConfigDict, Field


class CreateLiveStreamIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, description="Stream title")
    description: str | None = Field(None, description="Stream description")
    product_id: str | None = Field(None, description="Product featured in the stream")


class DeleteLiveStreamOut(BaseModel):
    id: str
    message: str

"""
Pydantic schemas for the portfolio HTTP API.
"""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from portfolio.models import Project


class GalleryUpload(BaseModel):
    filename: Optional[str] = None
    data_url: str = Field(..., validation_alias=AliasChoices("dataUrl", "data_url"))


class ProjectPayload(BaseModel):
    """Body of ``POST /projects`` and ``PUT /projects/{id}``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[int] = None
    title: str = ""
    category: str = ""
    description: str = ""
    plain_description: str = Field(
        default="",
        validation_alias=AliasChoices("plain_description", "plainDescription"),
    )
    image: str = ""
    gallery: list[str] = Field(default_factory=list)
    video: str = ""

    # Inline uploads for clients without direct storage access.
    image_base64: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("imageBase64", "image_base64")
    )
    image_filename: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("imageFilename", "image_filename")
    )
    gallery_base64: list[GalleryUpload] = Field(
        default_factory=list,
        validation_alias=AliasChoices("galleryBase64", "gallery_base64"),
    )

    def project_fields(self) -> dict:
        """Fields the client actually sent, without the inline uploads."""
        return self.model_dump(
            exclude_unset=True,
            exclude={"id", "image_base64", "image_filename", "gallery_base64"},
        )


class ProjectResponse(BaseModel):
    id: int
    title: str
    category: str
    description: str
    plain_description: str
    image: str
    gallery: list[str]
    video: str

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        return cls(**project.as_dict())


class OkResponse(BaseModel):
    ok: bool = True

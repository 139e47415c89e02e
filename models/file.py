"""File models - project files and their versions."""

from datetime import datetime

from pydantic import Field

from models.base import EntityModel


class FileVersion(EntityModel):
    """A new version of an existing project file."""

    id: str
    file_id: str
    project_id: str | None = None
    version_number: int | None = None
    size: int | None = None
    url: str | None = None
    uploaded_by: str | None = None
    notes: str | None = None
    created_at: datetime | None = None


class ProjectFile(EntityModel):
    """A file shared in a project workspace.

    A new version never replaces the file's identity; only its "last
    updated" metadata and version list change.
    """

    id: str
    project_id: str | None = None
    name: str = ""
    size: int | None = None
    type: str | None = None
    url: str | None = None
    uploaded_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    versions: list[FileVersion] = Field(default_factory=list)
    is_optimistic: bool = False

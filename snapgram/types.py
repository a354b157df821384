"""
Input records passed to the data-access operations.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class FileUpload:
    """A file selected for upload."""

    filename: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class NewUser:
    name: str
    email: str
    password: str
    username: Optional[str] = None


@dataclass
class NewPost:
    user_id: str
    caption: str
    files: List[FileUpload]
    location: Optional[str] = None
    # Comma-separated, e.g. "art, travel"
    tags: Optional[str] = None


@dataclass
class UpdatePost:
    post_id: str
    caption: str
    image_url: str
    image_id: str
    files: List[FileUpload] = field(default_factory=list)
    location: Optional[str] = None
    tags: Optional[str] = None


@dataclass
class UpdateUser:
    user_id: str
    name: str
    bio: Optional[str]
    image_url: str
    image_id: Optional[str] = None
    files: List[FileUpload] = field(default_factory=list)


def parse_tags(tags: Optional[str]) -> List[str]:
    """Split a comma-separated tag string, dropping spaces and empty entries."""
    if not tags:
        return []
    return [tag for tag in tags.replace(" ", "").split(",") if tag]

"""Tag Taxonomy - user-defined requirement labels"""

import logging
import re
from typing import Dict, Iterable, List, Optional

from .catalogue import CatalogueStore
from .exceptions import DuplicateTagError, NotFoundError, ValidationError
from .models import Tag

logger = logging.getLogger(__name__)

COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")
DEFAULT_COLOR = "#3b82f6"


def normalize_tag_name(name: str) -> str:
    """Tag id for a display name: lowercase, whitespace runs become hyphens"""
    return re.sub(r"\s+", "-", (name or "").strip().lower())


class TagTaxonomy:
    """Tag definitions plus safe rename/delete across tagged requirements.

    Requirement tag sets live on the requirements themselves; usage counts
    are always computed by scanning the catalogue.
    """

    def __init__(self, catalogue: CatalogueStore, tags: Optional[Iterable[Tag]] = None):
        self._catalogue = catalogue
        self._tags: Dict[str, Tag] = {}
        for tag in tags or []:
            self._tags[tag.id] = tag

    def tags(self) -> List[Tag]:
        return list(self._tags.values())

    def get(self, tag_id: str) -> Optional[Tag]:
        return self._tags.get(tag_id)

    def __contains__(self, tag_id) -> bool:
        return tag_id in self._tags

    def usage_count(self, tag_id: str) -> int:
        return sum(1 for requirement in self._catalogue.requirements() if tag_id in requirement.tags)

    def create_tag(self, name: str, color: str = DEFAULT_COLOR, description: str = "") -> Tag:
        name = (name or "").strip()
        tag_id = normalize_tag_name(name)
        if not tag_id:
            raise ValidationError("Tag name must not be blank")
        self._validate_color(color)
        if tag_id in self._tags:
            raise DuplicateTagError(tag_id)

        tag = Tag(
            id=tag_id,
            name=name,
            color=color,
            description=(description or "").strip() or f"Custom {name} tag",
        )
        self._tags[tag_id] = tag
        logger.info("Created tag %s", tag_id)
        return tag

    def rename_tag(self, tag_id: str, new_name: str, new_color: str, new_description: str) -> Tag:
        """Update a tag; a changed normalized name re-keys every tagged requirement"""
        if tag_id not in self._tags:
            raise NotFoundError("Tag", tag_id)
        new_name = (new_name or "").strip()
        new_id = normalize_tag_name(new_name)
        if not new_id:
            raise ValidationError("Tag name must not be blank")
        self._validate_color(new_color)
        if not (new_description or "").strip():
            raise ValidationError("Tag description must not be blank")
        if new_id != tag_id and new_id in self._tags:
            raise DuplicateTagError(new_id)

        tag = Tag(id=new_id, name=new_name, color=new_color, description=new_description.strip())
        if new_id != tag_id:
            moved = self._catalogue.retag(tag_id, new_id)
            del self._tags[tag_id]
            logger.info("Renamed tag %s -> %s on %d requirement(s)", tag_id, new_id, moved)
        self._tags[new_id] = tag
        return tag

    def delete_tag(self, tag_id: str, strict: bool = False) -> int:
        """Remove a tag and strip it from all requirements.

        Returns how many requirements carried the tag beforehand so the
        caller can confirm; an unknown tag is a no-op returning 0.
        """
        if tag_id not in self._tags:
            if strict:
                raise NotFoundError("Tag", tag_id)
            return 0
        usage = self._catalogue.strip_tag(tag_id)
        del self._tags[tag_id]
        logger.info("Deleted tag %s (was used by %d requirement(s))", tag_id, usage)
        return usage

    def to_dict(self) -> dict:
        return {tag.id: tag.to_dict() for tag in self._tags.values()}

    @classmethod
    def from_dict(cls, catalogue: CatalogueStore, data: dict) -> "TagTaxonomy":
        tags = []
        for tag_id, item in data.items():
            color = item.get("color") or DEFAULT_COLOR
            if not COLOR_PATTERN.match(color):
                raise ValidationError(f"Invalid colour {color!r} for tag {tag_id!r}")
            tags.append(Tag(
                id=tag_id,
                name=item.get("name") or tag_id,
                color=color,
                description=item.get("description") or "",
            ))
        return cls(catalogue, tags)

    @staticmethod
    def _validate_color(color: str):
        if not color or not COLOR_PATTERN.match(color):
            raise ValidationError(f"Invalid colour {color!r}; use hex format like #3b82f6")

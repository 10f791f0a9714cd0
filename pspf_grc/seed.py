"""Built-in PSPF catalogue: six domains, their requirements and the Essential Eight"""

import json
from functools import lru_cache
from pathlib import Path
from typing import List

from .models import Tag

DATA_FILE = Path(__file__).parent / "data" / "pspf_catalogue.json"

# Sample tags applied on a first run when demo tags are enabled
DEMO_REQUIREMENT_TAGS = {
    "GOV-001": ["high"],
    "GOV-002": ["critical"],
    "TECH-099": ["medium"],
    "INFO-058": ["low", "medium"],
}


@lru_cache()
def _load() -> dict:
    with open(DATA_FILE, encoding="utf-8") as f:
        return json.load(f)


def default_catalogue_data() -> dict:
    """Serialized catalogue with no stable ids yet assigned"""
    data = _load()
    return {
        "domains": [dict(domain) for domain in data["domains"]],
        "requirements": [dict(requirement) for requirement in data["requirements"]],
    }


def essential_eight_controls() -> List[dict]:
    """Ordered Essential Eight mitigation strategies mapped to requirement codes"""
    return [dict(control) for control in _load()["essential_eight"]]


def default_tags() -> List[Tag]:
    return [Tag(**item) for item in _load()["default_tags"]]

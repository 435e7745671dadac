import re
from typing import Any, Dict, List, Optional


def slugify(name: str) -> str:
    slug = re.sub(r"\s+", "-", name.strip().lower())
    return re.sub(r"[^\w-]+", "", slug, flags=re.ASCII)


def _key(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def build_category_tree(categories: List[Dict[str, Any]], parent_id: Any = None) -> List[Dict[str, Any]]:
    """Nest a flat category list by parent_id, starting from the roots.

    Re-scans the whole list at every level, which is fine for the handful of
    categories a catalog has.
    """
    parent = _key(parent_id)
    return [
        {**c, "subcategories": build_category_tree(categories, c["_id"])}
        for c in categories
        if _key(c.get("parent_id")) == parent
    ]

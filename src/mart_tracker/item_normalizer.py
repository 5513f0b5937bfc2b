"""Item name normalization for price grouping."""


def normalize_item_name(item_name: str) -> str:
    """Normalize item names into a grouping key.

    Surrounding whitespace is trimmed and case is folded to lowercase;
    inner spacing and punctuation are kept, so "Milk 1L" and "Milk" stay
    distinct products.
    """
    return item_name.strip().lower()

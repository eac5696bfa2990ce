ALLERGEN_LABELS = {
    "DAIRY": "Dairy",
    "NUTS": "Tree Nuts",
    "PEANUTS": "Peanuts",
    "GLUTEN": "Gluten",
    "WHEAT": "Wheat",
    "SOY": "Soy",
    "EGGS": "Eggs",
    "FISH": "Fish",
    "SHELLFISH": "Shellfish",
    "SESAME": "Sesame",
    "SULFITES": "Sulfites",
    "MUSTARD": "Mustard",
    "CELERY": "Celery",
    "LUPIN": "Lupin",
}

STORAGE_TYPE_LABELS = {
    "DRY": "Dry Storage",
    "CHILL": "Refrigerated (0-5°C)",
    "FREEZE": "Frozen (-18°C or below)",
}

WASTE_REASON_LABELS = {
    "SPOILAGE": "Spoilage",
    "OVERPRODUCTION": "Overproduction",
    "DAMAGE": "Physical Damage",
    "CONTAMINATION": "Contamination",
    "OTHER": "Other",
}


def format_allergens(allergens: list[str]) -> str:
    if not allergens:
        return "None"
    return ", ".join(ALLERGEN_LABELS.get(a, a) for a in allergens)


def storage_type_label(storage_type: str) -> str:
    return STORAGE_TYPE_LABELS.get(storage_type, storage_type)


def waste_reason_label(reason: str) -> str:
    return WASTE_REASON_LABELS.get(reason, reason)


def enum_label(value: str) -> str:
    """'AV_EQUIPMENT' -> 'Av Equipment'."""
    return " ".join(part.capitalize() for part in (value or "").split("_") if part)

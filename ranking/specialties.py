"""
ranking/specialties.py

Specialty alias, category, and keyword tables used for category and
name matching.
"""

from __future__ import annotations

GENERAL_SPECIALTY = "general"

# Dropdown values ("orthodontist") and internal keys ("orthodontics")
# both resolve to the internal key.
SPECIALTY_ALIASES: dict[str, str] = {
    "orthodontist": "orthodontics",
    "endodontist": "endodontics",
    "periodontist": "periodontics",
    "oral surgeon": "oral_surgery",
    "prosthodontist": "prosthodontics",
    "pediatric dentist": "pediatric",
    "orthodontics": "orthodontics",
    "endodontics": "endodontics",
    "periodontics": "periodontics",
    "oral_surgery": "oral_surgery",
    "pediatric": "pediatric",
    "prosthodontics": "prosthodontics",
    "general": GENERAL_SPECIALTY,
}

SPECIALTY_CATEGORIES: dict[str, tuple[str, ...]] = {
    "orthodontics": ("Orthodontist", "Orthodontic practice", "Orthodontics"),
    "endodontics": ("Endodontist", "Endodontic practice", "Root canal specialist"),
    "periodontics": ("Periodontist", "Periodontal practice", "Gum specialist"),
    "oral_surgery": (
        "Oral surgeon",
        "Oral and maxillofacial surgeon",
        "Oral surgery clinic",
    ),
    "pediatric": ("Pediatric dentist", "Children's dentist", "Kids dentist"),
    "prosthodontics": ("Prosthodontist", "Prosthodontic practice"),
    GENERAL_SPECIALTY: ("Dentist", "Dental clinic", "Dental practice", "Dental office"),
}

SPECIALTY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "orthodontics": ("orthodont", "braces", "invisalign", "ortho", "smile"),
    "endodontics": ("endodont", "root canal", "endo"),
    "periodontics": ("periodont", "gum", "perio"),
    "oral_surgery": ("oral surgery", "oral surgeon", "maxillofacial"),
    "pediatric": ("pediatric", "kids", "children", "pedo"),
    "prosthodontics": ("prosthodont", "dentures", "implants", "crowns"),
}


def normalize_specialty(specialty: str | None) -> str:
    """
    Map a free-form specialty string to its internal key.

    Unknown or empty values fall back to ``"general"``.
    """

    if not specialty:
        return GENERAL_SPECIALTY
    return SPECIALTY_ALIASES.get(str(specialty).strip().lower(), GENERAL_SPECIALTY)


def specialty_categories(specialty: str | None) -> tuple[str, ...]:
    return SPECIALTY_CATEGORIES.get(normalize_specialty(specialty), SPECIALTY_CATEGORIES[GENERAL_SPECIALTY])


def specialty_keywords(specialty: str | None) -> tuple[str, ...]:
    """
    Return name keywords for a specialty. General practices have none.
    """

    return SPECIALTY_KEYWORDS.get(normalize_specialty(specialty), ())


def name_has_keyword(name: str | None, keywords: tuple[str, ...] | list[str]) -> bool:
    normalized_name = (name or "").lower()
    return any(keyword.lower() in normalized_name for keyword in keywords)

"""
Class-level display names per education system.

Level 1–6 map to "Class 1".."Class 6" in the anglophone system and to
SIL..CM2 in the francophone one. The class_name_mappings table overrides
these defaults when a school renames its levels.
"""

from __future__ import annotations

from database import query

EDUCATION_SYSTEMS = ("anglophone", "francophone")

DEFAULT_CLASS_NAMES: dict[str, dict[int, str]] = {
    "anglophone": {1: "Class 1", 2: "Class 2", 3: "Class 3", 4: "Class 4", 5: "Class 5", 6: "Class 6"},
    "francophone": {1: "SIL", 2: "CP", 3: "CE1", 4: "CE2", 5: "CM1", 6: "CM2"},
}


def _mapping(education_system: str) -> dict[int, str]:
    system = education_system if education_system in EDUCATION_SYSTEMS else "anglophone"
    names = dict(DEFAULT_CLASS_NAMES[system])
    result = query(
        "SELECT level, class_name FROM class_name_mappings WHERE education_system = ? ORDER BY level",
        (system,),
    )
    # Defaults stay usable when the table is unreachable
    for row in result.rows:
        names[int(row["level"])] = row["class_name"]
    return names


def get_class_names(education_system: str = "anglophone") -> list[dict]:
    return [
        {"level": level, "name": name}
        for level, name in sorted(_mapping(education_system).items())
    ]


def get_class_name_by_level(level: int, education_system: str = "anglophone") -> str:
    return _mapping(education_system).get(level, f"Level {level}")


def get_level_by_class_name(class_name: str, education_system: str = "anglophone") -> int | None:
    for level, name in _mapping(education_system).items():
        if name.lower() == class_name.strip().lower():
            return level
    return None

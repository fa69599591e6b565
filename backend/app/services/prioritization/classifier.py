"""
Category Suggestion

Keyword-rule classifier that suggests an issue category, severity and
department from free text. Explainable by construction: every suggestion
lists the keywords that produced it.
"""
from typing import Any, Dict, List


CLASSIFICATION_RULES: List[Dict[str, Any]] = [
    {
        "category": "Water Leakage",
        "severity": "HIGH",
        "department": "Water",
        "keywords": ["water", "leak", "leaking", "pipe", "burst", "flood", "drain", "sewage", "waterlogging", "overflow"],
    },
    {
        "category": "Road Damage",
        "severity": "MEDIUM",
        "department": "Roads",
        "keywords": ["pothole", "road", "crack", "broken road", "asphalt", "highway", "footpath", "pavement", "crater"],
    },
    {
        "category": "Garbage",
        "severity": "MEDIUM",
        "department": "Sanitation",
        "keywords": ["garbage", "trash", "waste", "dustbin", "dump", "litter", "bin", "rubbish", "filth", "stink", "smell"],
    },
    {
        "category": "Streetlight",
        "severity": "LOW",
        "department": "Electrical",
        "keywords": ["streetlight", "light", "lamp", "dark", "bulb", "pole", "electricity", "power", "blackout"],
    },
    {
        "category": "Public Safety",
        "severity": "HIGH",
        "department": "Public Safety",
        "keywords": ["danger", "unsafe", "accident", "fire", "hazard", "crime", "theft", "assault", "emergency", "collapse"],
    },
    {
        "category": "Park / Open Space",
        "severity": "LOW",
        "department": "Parks",
        "keywords": ["park", "garden", "bench", "playground", "tree", "grass", "green", "fence"],
    },
    {
        "category": "Stray Animals",
        "severity": "MEDIUM",
        "department": "Animal Control",
        "keywords": ["stray", "dog", "animal", "cat", "cow", "monkey", "bite", "rabies", "barking"],
    },
]

MAX_CONFIDENCE = 99  # Never claim certainty


def classify_text(text: str) -> List[Dict[str, Any]]:
    """
    Suggest categories for a complaint description.

    Confidence is the share of a rule's keywords found in the text.
    Returns matches sorted by confidence, highest first; empty for blank input.
    """
    if not text or not isinstance(text, str):
        return []

    lower_text = text.lower()
    results = []

    for rule in CLASSIFICATION_RULES:
        matched = [kw for kw in rule["keywords"] if kw in lower_text]
        if not matched:
            continue

        confidence = int(len(matched) / len(rule["keywords"]) * 100 + 0.5)
        results.append({
            "category": rule["category"],
            "suggested_severity": rule["severity"],
            "department": rule["department"],
            "confidence": min(confidence, MAX_CONFIDENCE),
            "matched_keywords": matched,
        })

    # sorted() is stable, so equal confidences keep rule order
    return sorted(results, key=lambda r: r["confidence"], reverse=True)

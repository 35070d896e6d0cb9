# booktracker/ratings.py
"""
Rating aggregation.

A book carries five optional 1-10 sub-ratings. The overall rating is the
average of the ones that are present, on a 0-10 scale, and the star rating
is that value mapped onto 0-5 stars. All rounding is base-10 round-half-up
to one decimal so that 6.25 shows as 6.3 and not 6.2.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from booktracker.models import Ratings

Number = Union[int, float, Decimal]

RATING_MIN = 1
RATING_MAX = 10

RATING_CATEGORIES = ("Characters", "World Building", "Plot", "Writing Style", "Enjoyment")

RATING_GUIDE = {
    "Characters": {
        1: "Extremely poor character development, unrealistic or annoying characters",
        2: "Poor character development, mostly flat or stereotypical characters",
        3: "Below average characters, some development but lacking depth",
        4: "Mediocre characters, basic development with some interesting moments",
        5: "Average characters, decent development but nothing exceptional",
        6: "Good characters, solid development with some memorable traits",
        7: "Very good characters, well-developed with clear motivations",
        8: "Excellent characters, complex and engaging with strong arcs",
        9: "Outstanding characters, deeply developed and emotionally resonant",
        10: "Perfect characters, unforgettable and masterfully crafted",
    },
    "World Building": {
        1: "No world building, confusing or inconsistent setting",
        2: "Poor world building, basic setting with many gaps",
        3: "Below average world building, some details but lacks cohesion",
        4: "Mediocre world building, functional but not particularly engaging",
        5: "Average world building, decent setting with adequate detail",
        6: "Good world building, well-constructed with interesting elements",
        7: "Very good world building, immersive and well-thought-out",
        8: "Excellent world building, rich and detailed environment",
        9: "Outstanding world building, incredibly immersive and original",
        10: "Perfect world building, absolutely captivating and flawless",
    },
    "Plot": {
        1: "Terrible plot, incoherent or extremely boring",
        2: "Poor plot, confusing or unengaging storyline",
        3: "Below average plot, some interesting moments but overall weak",
        4: "Mediocre plot, functional but predictable or slow",
        5: "Average plot, decent story with some engaging elements",
        6: "Good plot, well-structured with engaging developments",
        7: "Very good plot, compelling with good pacing and twists",
        8: "Excellent plot, gripping and well-executed storyline",
        9: "Outstanding plot, masterfully crafted and engaging",
        10: "Perfect plot, absolutely brilliant and unforgettable",
    },
    "Writing Style": {
        1: "Terrible writing, difficult to read or poorly constructed",
        2: "Poor writing style, awkward prose or frequent errors",
        3: "Below average writing, readable but lacks flow or elegance",
        4: "Mediocre writing style, functional but not particularly engaging",
        5: "Average writing style, clear and readable prose",
        6: "Good writing style, well-crafted and engaging prose",
        7: "Very good writing style, beautiful and flowing language",
        8: "Excellent writing style, masterful use of language",
        9: "Outstanding writing style, exceptional and memorable prose",
        10: "Perfect writing style, absolutely beautiful and flawless",
    },
    "Enjoyment": {
        1: "Hated it, could barely finish reading",
        2: "Disliked it strongly, struggled to continue",
        3: "Disliked it, not enjoyable but manageable",
        4: "Below average enjoyment, some redeeming qualities",
        5: "Average enjoyment, okay read but nothing special",
        6: "Good enjoyment, liked it and would recommend",
        7: "Very enjoyable, really liked it and engaged throughout",
        8: "Excellent enjoyment, loved it and couldn't put it down",
        9: "Outstanding enjoyment, absolutely loved every moment",
        10: "Perfect enjoyment, one of the best books ever read",
    },
}

def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.35 as 0.35 instead of its binary expansion
    return Decimal(str(value))

def round_half_up(value: Number, places: int = 1) -> float:
    """Round a number half-up on its base-10 representation."""
    quantum = Decimal(1).scaleb(-places)
    return float(_to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))

def calculate_overall_rating(ratings: Ratings) -> float:
    """
    Average of the present sub-ratings on the 0-10 scale, one decimal.
    N/A sub-ratings are left out; if every one is N/A the overall rating is 0.
    """
    present = ratings.present()
    if not present:
        return 0.0
    return round_half_up(Decimal(sum(present)) / Decimal(len(present)))

def calculate_legacy_overall_rating(ratings: Ratings) -> float:
    """Earlier rule: always divide by five, N/A counting as zero."""
    total = sum(ratings.present())
    return round_half_up(Decimal(total) / Decimal(5))

def convert_to_star_rating(overall: Number, scale: int = 10) -> float:
    """Map an overall rating on a 0-`scale` range to 0-5 stars."""
    if scale <= 0:
        raise ValueError("scale must be positive")
    return round_half_up(_to_decimal(overall) * 5 / Decimal(scale))

def rating_label(category: str, value: int) -> str:
    """Rating-guide description for one sub-rating, '' when unknown or N/A."""
    return RATING_GUIDE.get(category, {}).get(value, "")

"""Edit-distance similarity used by fuzzy text matching."""


def levenshtein_distance(a: str, b: str) -> int:
    """Classic dynamic-programming edit distance with unit costs."""
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current[j] = min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            )
        previous = current
    return previous[len(b)]


def calculate_similarity(a: str, b: str) -> float:
    """Similarity in [0, 1]: ``1 - distance / max(len(a), len(b))``.

    Two empty strings are identical (similarity 1).
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest

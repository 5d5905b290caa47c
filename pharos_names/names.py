import random
import string

ALPHABET = string.ascii_lowercase + string.digits


def generate_label(min_len, max_len, rng=None):
    """Random lowercase alphanumeric label, length uniform in [min_len, max_len]."""
    rng = rng or random
    length = rng.randint(min_len, max_len)
    return ''.join(rng.choice(ALPHABET) for _ in range(length))

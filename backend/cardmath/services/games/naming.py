"""Room codes, player ids and friendly room names.

Pure generation; uniqueness against live rooms is the caller's job, which
passes the names already taken.
"""
import random
import string
from typing import Collection

ADJECTIVES = [
    'happy', 'tiny', 'quick', 'brave', 'silly', 'bright', 'bouncy', 'jolly',
    'clever', 'merry', 'gentle', 'neon', 'sparkly', 'lucky', 'mighty',
]
NOUN_POOLS = [
    ['bunny', 'fox', 'panda', 'otter', 'koala', 'puppy', 'kitten', 'owl', 'dolphin', 'penguin'],
    ['star', 'pond', 'cloud', 'meadow', 'river', 'mountain', 'valley', 'garden', 'grove', 'tree'],
    ['rocket', 'comet', 'orbit', 'cosmo', 'galaxy', 'meteor', 'asteroid', 'nebula', 'luna', 'sol'],
    ['apple', 'berry', 'peach', 'mango', 'melon', 'kiwi', 'pear', 'plum', 'grape', 'cherry'],
]


def generate_room_code(length=6) -> str:
    return ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))


def generate_player_id() -> str:
    return 'player_' + ''.join(random.choices(string.ascii_lowercase + string.digits, k=8))


def generate_room_name(taken: Collection[str] = (), attempts=12) -> str:
    """Return a kid-friendly name such as ``merry-otter`` or ``neon star-comet``.

    Roughly one name in three is a two-noun name. After ``attempts``
    collisions a random ``fun-xyz`` name is returned instead.
    """
    for _ in range(attempts):
        adj = random.choice(ADJECTIVES)
        first = random.choice(random.choice(NOUN_POOLS))
        if random.random() < 0.3:
            second = random.choice(random.choice(NOUN_POOLS))
            name = f"{adj} {first}-{second}"
        else:
            name = f"{adj}-{first}"
        if name not in taken:
            return name
    return 'fun-' + ''.join(random.choices(string.ascii_lowercase + string.digits, k=3))

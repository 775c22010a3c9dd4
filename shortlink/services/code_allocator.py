"""
Short Code Allocator

Produces a unique short code for every new link and performs the unique
insert that claims it.

Strategies:
- Requested alias: the alias itself becomes the code after charset/length
  validation. Aliases are never reused, even from soft-deleted links.
- Sequential: atomically increment a counter in the durable store and encode
  the value in base62. Collision-free without a lookup, but guessable, and
  codes grow over time (no padding).
- Random: draw a fixed-length code uniformly from the base62 alphabet, check
  the store, redraw on collision. Retries are bounded.

Design Decisions:
- The store's unique constraint is the final arbiter. A ConflictError on
  insert is treated exactly like a collision found by the existence check,
  so concurrent allocators race safely.
- Sequential codes are offset by 62**2 so even the first counter value
  yields a code of the minimum link code length (3).
- Alphabet order is digits, uppercase, lowercase.
"""

import logging
import random
from typing import Optional

from shortlink.core.exceptions import (
    AliasInvalidError,
    AliasTakenError,
    AllocationExhaustedError,
    ConflictError,
    store_unavailable_on_error,
)
from shortlink.core.setting import AllocationStrategy
from shortlink.core.validators import MIN_CODE_LENGTH, is_valid_code
from shortlink.db.interface import LinkStore
from shortlink.db.models import Link

logger = logging.getLogger(__name__)

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
BASE = len(ALPHABET)
SEQUENTIAL_OFFSET = BASE ** (MIN_CODE_LENGTH - 1)

_INDEX = {char: position for position, char in enumerate(ALPHABET)}


def encode_base62(number: int) -> str:
    """
    Encode a non-negative integer in base62.

    Example:
        encode_base62(0) -> "0"
        encode_base62(61) -> "z"
        encode_base62(62) -> "10"
    """
    if number < 0:
        raise ValueError(f"Cannot encode negative number: {number}")
    if number == 0:
        return ALPHABET[0]

    digits = []
    while number > 0:
        number, remainder = divmod(number, BASE)
        digits.append(ALPHABET[remainder])
    return "".join(reversed(digits))


def decode_base62(encoded: str) -> int:
    """Decode a base62 string back to its integer value."""
    if not encoded:
        raise ValueError("Cannot decode an empty string")

    number = 0
    for char in encoded:
        if char not in _INDEX:
            raise ValueError(f"Invalid base62 character: {char!r}")
        number = number * BASE + _INDEX[char]
    return number


class CodeAllocator:
    """
    Assigns codes to new links and inserts them.

    The allocator holds no state of its own besides its configuration and
    random source; everything shared lives in the durable store.
    """

    def __init__(
        self,
        store: LinkStore,
        strategy: AllocationStrategy = AllocationStrategy.sequential,
        code_length: int = 6,
        max_retries: int = 10,
        counter_namespace: str = "urlCounter",
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.strategy = AllocationStrategy(strategy)
        self.code_length = code_length
        self.max_retries = max_retries
        self.counter_namespace = counter_namespace
        self._rng = rng or random.SystemRandom()

    async def allocate(self, link: Link, requested_alias: Optional[str] = None) -> Link:
        """
        Assign a code to ``link`` and insert it.

        Args:
            link: Unsaved link carrying the destination and optional attributes
            requested_alias: Alias to use as the code, if any

        Returns:
            The stored link

        Raises:
            AliasInvalidError: Alias breaks the code rules
            AliasTakenError: Alias already used by any link
            AllocationExhaustedError: Every attempt collided
            ServiceUnavailableError: The durable store failed
        """
        with store_unavailable_on_error("allocation"):
            if requested_alias is not None:
                return await self._allocate_alias(link, requested_alias)
            if self.strategy is AllocationStrategy.sequential:
                return await self._allocate_sequential(link)
            return await self._allocate_random(link)

    async def _allocate_alias(self, link: Link, alias: str) -> Link:
        if not is_valid_code(alias):
            raise AliasInvalidError(alias)

        if await self.store.find_by_alias_or_code(alias) is not None:
            raise AliasTakenError(alias)

        link.code = alias
        link.alias = alias
        try:
            return await self.store.insert_unique(link)
        except ConflictError as e:
            raise AliasTakenError(alias) from e

    async def _allocate_sequential(self, link: Link) -> Link:
        # Occupied values can only come from aliases that happen to look
        # like base62 numbers; skip past them.
        for attempt in range(1, self.max_retries + 1):
            value = await self.store.increment_counter(self.counter_namespace)
            link.code = encode_base62(SEQUENTIAL_OFFSET + value)
            try:
                return await self.store.insert_unique(link)
            except ConflictError:
                logger.warning(
                    f"Sequential code {link.code} already taken (attempt {attempt}/{self.max_retries})"
                )
        raise AllocationExhaustedError(self.max_retries)

    async def _allocate_random(self, link: Link) -> Link:
        for attempt in range(1, self.max_retries + 1):
            code = self._draw_code()
            if await self.store.find_by_alias_or_code(code) is not None:
                logger.debug(f"Random code {code} collided (attempt {attempt}/{self.max_retries})")
                continue

            link.code = code
            try:
                return await self.store.insert_unique(link)
            except ConflictError:
                logger.debug(f"Lost insert race for {code} (attempt {attempt}/{self.max_retries})")

        logger.error(f"Random allocation exhausted after {self.max_retries} attempts")
        raise AllocationExhaustedError(self.max_retries)

    def _draw_code(self) -> str:
        return "".join(self._rng.choice(ALPHABET) for _ in range(self.code_length))

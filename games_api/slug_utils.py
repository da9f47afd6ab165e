import re
import secrets
import string
import unicodedata

SUFFIX_LENGTH = 6
BASE36_DIGITS = string.digits + string.ascii_lowercase
FALLBACK_SLUG = "game"
_SLUG_SANITISE_RE = re.compile(r"[^a-z0-9]+")


class SlugUtils:
    def slugify(self, name: str) -> str:
        """Lower-case URL-safe form of a name

        Args:
            name (str): Game name as entered by the creator

        Returns:
            str: Accents folded to ASCII, then runs of anything but [a-z0-9]
            collapsed to a single "-"
        """
        ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
        trimmed = ascii_name.strip().casefold()
        slug = _SLUG_SANITISE_RE.sub("-", trimmed).strip("-")
        return slug or FALLBACK_SLUG

    def random_suffix(self) -> str:
        """Six base36 digits drawn from 36**6 values, zero padded"""
        value = secrets.randbelow(36**SUFFIX_LENGTH)
        digits = []
        for _ in range(SUFFIX_LENGTH):
            value, remainder = divmod(value, 36)
            digits.append(BASE36_DIGITS[remainder])
        return "".join(reversed(digits))

    def generate(self, name: str) -> str:
        return f"{self.slugify(name)}-{self.random_suffix()}"

"""Owner password generation for encrypted copies."""

from __future__ import annotations

import secrets


class PasswordGenerator:
    """Produce URL-safe random passwords."""

    def generate(self, num_bytes: int = 12) -> str:
        """Return ``num_bytes`` of randomness as unpadded URL-safe base64.

        A password starting with ``-`` would be read as an option by the
        toolkit command line, so such values are drawn again.
        """

        password = secrets.token_urlsafe(num_bytes)
        while password.startswith("-"):
            password = secrets.token_urlsafe(num_bytes)
        return password

"""
Password rules expressed as preconditions.

    python3 examples/password_validator.py
"""

import re

from contractweave import PreconditionViolation, contract, precondition


@contract
class PasswordValidator:

    @precondition({
        "len(password) >= 8": "Password must be at least 8 characters long.",
        "re.search(r'[A-Z]', password)": "Password must contain at least one uppercase letter.",
        "re.search(r'[a-z]', password)": "Password must contain at least one lowercase letter.",
        "re.search(r'[0-9]', password)": "Password must contain at least one digit.",
    })
    def _validate_password(self, password: str) -> None:
        # valid if it passes all preconditions
        return None


if __name__ == "__main__":
    validator = PasswordValidator()
    for candidate in ("short", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere", "Val1dPassword"):
        try:
            validator.validate_password(candidate)
            print(f"✅ {candidate}")
        except PreconditionViolation as e:
            print(f"❌ {candidate}: {e}")

#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Password generation module for the Secure Password Vault"""

import math
import secrets
from password_vault.constants import LOWERCASE, UPPERCASE, DIGITS, SPECIAL_CHARS

DEFAULT_LENGTH = 15
MIN_LENGTH = 4

_random = secrets.SystemRandom()


def create_diverse_password(length, all_chars, **char_types):
    """
    Create a password with at least one character from each required type

    Args:
        length: Length of password to generate
        all_chars: List of all allowed characters
        **char_types: Keyword arguments for character types to include

    Returns:
        Generated password string
    """
    password = []

    # Start with one character from each required type
    if char_types.get('use_lowercase', False):
        password.append(secrets.choice(LOWERCASE))

    if char_types.get('use_uppercase', False):
        password.append(secrets.choice(UPPERCASE))

    if char_types.get('use_digits', False):
        password.append(secrets.choice(DIGITS))

    if char_types.get('use_special', False):
        password.append(secrets.choice(SPECIAL_CHARS))

    # Fill remaining characters randomly
    while len(password) < length:
        password.append(secrets.choice(all_chars))

    _random.shuffle(password)
    return ''.join(password)


# Lower bound (bits) for each rating, strongest first
STRENGTH_RATINGS = (
    (90, "Excellent"),
    (70, "Very Strong"),
    (55, "Strong"),
    (35, "Medium"),
)

# Pool size assumed for characters outside the generator's sets
OTHER_CHARS_POOL = 32


def estimate_entropy(password):
    """
    Estimate the entropy of a password in bits

    The estimate is length * log2(pool), where the pool is the combined size
    of every character set the password draws from.

    Args:
        password: Password to evaluate

    Returns:
        Estimated entropy in bits (0.0 for an empty password)
    """
    pool = 0
    remaining = set(password)
    for char_set in (LOWERCASE, UPPERCASE, DIGITS, SPECIAL_CHARS):
        if remaining & set(char_set):
            pool += len(char_set)
            remaining -= set(char_set)
    if remaining:
        pool += OTHER_CHARS_POOL

    if not pool:
        return 0.0
    return len(password) * math.log2(pool)


def calculate_password_strength(password):
    """Rate a password from its estimated entropy"""
    bits = estimate_entropy(password)
    for threshold, rating in STRENGTH_RATINGS:
        if bits >= threshold:
            return rating
    return "Weak"


def generate_password(length=DEFAULT_LENGTH, use_special=True, use_uppercase=True, use_digits=True, logger=None):
    """
    Generate a strong random password with selected character types

    Args:
        length: Length of password to generate
        use_special: Whether to include special characters
        use_uppercase: Whether to include uppercase letters
        use_digits: Whether to include digits
        logger: Optional logger instance

    Returns:
        Dictionary with password info

    Raises:
        ValueError: If length is not an integer of at least MIN_LENGTH
    """
    # Log password generation (without the actual password)
    if logger:
        logger.info(f"Generating password (length={length}, special={use_special}, uppercase={use_uppercase}, digits={use_digits})")

    if not isinstance(length, int) or length < MIN_LENGTH:
        raise ValueError(f"Password length must be an integer of at least {MIN_LENGTH}")

    # Build character set based on options
    all_chars = LOWERCASE.copy()

    if use_uppercase:
        all_chars += UPPERCASE

    if use_digits:
        all_chars += DIGITS

    if use_special:
        all_chars += SPECIAL_CHARS

    password = create_diverse_password(
        length,
        all_chars,
        use_lowercase=True,
        use_uppercase=use_uppercase,
        use_digits=use_digits,
        use_special=use_special
    )

    return {
        'password': password,
        'strength': calculate_password_strength(password),
        'entropy_bits': round(estimate_entropy(password), 1),
        'length': len(password),
        'character_types': {
            'lowercase': any(c in LOWERCASE for c in password),
            'uppercase': any(c in UPPERCASE for c in password),
            'digits': any(c in DIGITS for c in password),
            'special': any(c in SPECIAL_CHARS for c in password)
        }
    }

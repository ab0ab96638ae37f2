"""Shared validation utilities"""

import re
from typing import Optional


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a customer phone number.

    WhatsApp identifies chats by the digits-only international number, so
    the same form is stored here: punctuation and spaces are stripped, a
    leading "+" is dropped.

    Args:
        phone: Phone number string in various formats

    Returns:
        Digits-only phone number (8 to 15 digits)

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)

    if len(digits) < 8 or len(digits) > 15:
        raise ValueError("Phone number must have between 8 and 15 digits")

    return digits


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_percentage(value: Optional[float]) -> Optional[float]:
    """Commission percentages live in [0, 100]"""
    if value is None:
        return value
    if value < 0 or value > 100:
        raise ValueError("Percentage must be between 0 and 100")
    return value


def normalize_whatsapp_chat_id(chat_id: Optional[str]) -> str:
    """Strip WhatsApp JID suffixes ("5511999999999@c.us") down to digits"""
    if not chat_id:
        return ""
    return re.sub(r"\D", "", chat_id.split("@", 1)[0])

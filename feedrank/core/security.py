def redact_id(user_id: str | None, visible_chars: int = 6) -> str:
    """
    Redact a user id for logging purposes.
    Shows the first few characters followed by ***.
    """
    if not user_id:
        return "anonymous"
    if len(user_id) <= visible_chars:
        return user_id
    return f"{user_id[:visible_chars]}***"

# shared/identity.py
"""
Key and name derivation for everything stored remotely.

Raw email addresses cannot be used as database path segments, so every
record is keyed by its "safe email": '.' and '@' replaced by '-'.
The transform is a fixed point on its own output.
"""

CONVERSATION_ID_PREFIX = "conversation_"


def safe_email(email: str) -> str:
    safe = email.replace(".", "-")
    safe = safe.replace("@", "-")
    return safe


def make_message_id(other_user_email: str, current_email: str, date_string: str) -> str:
    """
    '<otherUserEmail>_<safeCurrentEmail>_<formattedDate>'.

    Two messages from the same sender to the same recipient inside one
    formatted-timestamp tick get the same id; nothing guards against it.
    """
    return f"{other_user_email}_{safe_email(current_email)}_{date_string}"


def conversation_id_for(message_id: str) -> str:
    return f"{CONVERSATION_ID_PREFIX}{message_id}"


def profile_picture_file_name(email: str) -> str:
    return f"{safe_email(email)}_profile_picture.png"


def profile_picture_path(email: str) -> str:
    return f"images/{profile_picture_file_name(email)}"


def photo_message_file_name(message_id: str) -> str:
    return "photo_message_" + message_id.replace(" ", "-") + ".png"


def video_message_file_name(message_id: str) -> str:
    return "video_message_" + message_id.replace(" ", "-") + ".mov"

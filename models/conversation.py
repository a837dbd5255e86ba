from pydantic import BaseModel


class LatestMessage(BaseModel):
    date: str
    message: str
    is_read: bool


class ConversationSummary(BaseModel):
    """
    One participant's own copy of a conversation, stored as an element of
    <safeEmail>/conversations. The counterpart holds an independent copy
    with the roles swapped.
    """
    id: str
    other_user_email: str
    name: str
    latest_message: LatestMessage

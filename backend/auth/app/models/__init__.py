from .user import User, UserStatus
from .invitation import InvitationCode, InvitationRecord, CodeStatus, CodeState, RecordStatus

__all__ = [
    "User", "UserStatus",
    "InvitationCode", "InvitationRecord", "CodeStatus", "CodeState", "RecordStatus",
]

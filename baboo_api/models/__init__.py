from baboo_api.models.expert_admin_dm import ExpertAdminDM
from baboo_api.models.inquiry import Inquiry
from baboo_api.models.user import User

__all__ = [
    "User",
    "Inquiry",
    "ExpertAdminDM",
]

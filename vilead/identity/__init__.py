from vilead.identity.service import IdentityService, check_credentials, identity_service, user_id_for_email

__all__ = [
    "IdentityService",
    "check_credentials",
    "identity_service",
    "user_id_for_email",
]

from rest_framework.authentication import TokenAuthentication


class BearerTokenAuthentication(TokenAuthentication):
    """Session token sent as ``Authorization: Bearer <key>``."""
    keyword = 'Bearer'

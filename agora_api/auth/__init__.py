"""Authentication and authorization: token verification, roles, access guard."""

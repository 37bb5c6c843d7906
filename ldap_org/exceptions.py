class LdapOrgError(Exception):
    """Base exception for LDAP org reader errors."""
    pass

class ConfigurationError(LdapOrgError):
    """Raised when provider configuration is missing or malformed."""
    pass

class ProviderNotFoundError(LdapOrgError):
    """Raised when no configured provider matches a location target."""
    pass

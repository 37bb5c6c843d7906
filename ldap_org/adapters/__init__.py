from .ldap_adapter import LDAPAdapter, record_from_response

__all__ = ['LDAPAdapter', 'record_from_response']

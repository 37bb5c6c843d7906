from .org_reader_facade import LdapOrgReader, OrgReadResult

__all__ = ['LdapOrgReader', 'OrgReadResult']

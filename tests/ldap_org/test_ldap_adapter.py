import unittest
from unittest.mock import MagicMock, patch

from ldap3 import BASE, LEVEL, SUBTREE
from ldap3.core.exceptions import LDAPException

from ldap_org.adapters.ldap_adapter import LDAPAdapter, record_from_response
from ldap_org.config import BindConfig, ProviderConfig, SearchOptions
from ldap_org.exceptions import ConfigurationError
from ldap_org.records import AttributeRecord


def _entry(dn, **raw_attributes):
    return {"type": "searchResEntry", "dn": dn, "raw_attributes": raw_attributes}


class TestRecordFromResponse(unittest.TestCase):
    """Tests for converting ldap3 response entries."""

    def test_decodes_raw_values(self):
        record = record_from_response(
            _entry(
                "uid=jdoe,ou=people",
                uid=[b"jdoe"],
                cn=[b"J\xc3\xbcrgen Doe"],
                memberOf=[b"cn=a,ou=groups", b"cn=b,ou=groups"],
            )
        )

        self.assertEqual(record.dn, "uid=jdoe,ou=people")
        self.assertEqual(
            record.attributes,
            (
                ("uid", ("jdoe",)),
                ("cn", ("Jürgen Doe",)),
                ("memberOf", ("cn=a,ou=groups", "cn=b,ou=groups")),
            ),
        )

    def test_single_raw_value_is_wrapped(self):
        record = record_from_response(_entry("cn=x", cn=b"x"))
        self.assertEqual(record.to_map(), {"cn": ("x",)})

    def test_binary_attribute_is_skipped(self):
        record = record_from_response(
            _entry(
                "cn=x",
                cn=[b"x"],
                objectGUID=[b"\x8f\xb4\x1a\xff\x00\xd2"],
                jpegPhoto=[b"\xff\xd8\xff\xe0"],
            )
        )
        self.assertEqual(record.to_map(), {"cn": ("x",)})

    def test_attribute_with_one_binary_value_is_skipped_whole(self):
        record = record_from_response(_entry("cn=x", cn=[b"x"], description=[b"ok", b"\xff"]))
        self.assertEqual(record.to_map(), {"cn": ("x",)})

    def test_missing_attributes(self):
        record = record_from_response({"type": "searchResEntry", "dn": "cn=x"})
        self.assertEqual(record, AttributeRecord(dn="cn=x", attributes=()))


class TestLDAPAdapter(unittest.TestCase):
    """
    Unit tests for LDAPAdapter with ldap3 Server and Connection mocked out.
    """

    def setUp(self):
        """Set up test fixtures before each test method."""
        server_patcher = patch("ldap_org.adapters.ldap_adapter.Server")
        connection_patcher = patch("ldap_org.adapters.ldap_adapter.Connection")
        self.mock_server = server_patcher.start()
        self.mock_connection = connection_patcher.start()

        self.conn = MagicMock()
        self.conn.bound = True
        self.mock_connection.return_value = self.conn

        self.provider = ProviderConfig(
            target="ldaps://ds.example.net",
            bind=BindConfig(dn="uid=reader,ou=people", secret="s3cret"),
        )
        self.adapter = LDAPAdapter(self.provider)

    def tearDown(self):
        """Tear down test fixtures after each test method."""
        patch.stopall()

    # ----- Test construction -----

    def test_requires_provider_config(self):
        with self.assertRaises(TypeError):
            LDAPAdapter({"target": "ldaps://ds.example.net"})

    # ----- Test search method -----

    def test_search_simple(self):
        self.conn.response = [
            _entry("uid=a,ou=people", uid=[b"a"]),
            {"type": "searchResRef", "uri": ["ldap://other"]},
            _entry("uid=b,ou=people", uid=[b"b"]),
        ]

        records = self.adapter.search("ou=people", SearchOptions())

        self.conn.search.assert_called_once_with(
            search_base="ou=people",
            search_filter="(objectClass=*)",
            search_scope=LEVEL,
            attributes=["*", "+"],
        )
        self.assertEqual([r.dn for r in records], ["uid=a,ou=people", "uid=b,ou=people"])
        self.conn.unbind.assert_called_once()

    def test_search_scope_and_filter(self):
        self.conn.response = []

        self.adapter.search("ou=groups", SearchOptions(scope="sub", filter="(cn=eng*)"))
        self.adapter.search("cn=eng,ou=groups", SearchOptions(scope="base"))

        first, second = self.conn.search.call_args_list
        self.assertEqual(first.kwargs["search_scope"], SUBTREE)
        self.assertEqual(first.kwargs["search_filter"], "(cn=eng*)")
        self.assertEqual(second.kwargs["search_scope"], BASE)

    def test_search_paged(self):
        self.conn.extend.standard.paged_search.return_value = [
            _entry("cn=eng,ou=groups", cn=[b"eng"]),
        ]

        records = self.adapter.search("ou=groups", SearchOptions(paged=True, attributes=["cn"]))

        self.conn.extend.standard.paged_search.assert_called_once_with(
            paged_size=500,
            generator=False,
            search_base="ou=groups",
            search_filter="(objectClass=*)",
            search_scope=LEVEL,
            attributes=["cn"],
        )
        self.conn.search.assert_not_called()
        self.assertEqual(records[0].to_map(), {"cn": ("eng",)})

    def test_search_unknown_scope(self):
        with self.assertRaises(ValueError):
            self.adapter.search("ou=people", SearchOptions(scope="subtree"))

    def test_search_error_propagates_and_unbinds(self):
        self.conn.search.side_effect = LDAPException("timeout")

        with self.assertRaises(LDAPException):
            self.adapter.search("ou=people", SearchOptions())

        self.conn.unbind.assert_called_once()

    def test_search_users_and_groups_use_provider_settings(self):
        self.conn.response = []

        self.adapter.search_users()
        self.adapter.search_groups()

        bases = [call.kwargs["search_base"] for call in self.conn.search.call_args_list]
        self.assertEqual(bases, ["ou=people", "ou=groups"])

    # ----- Test binding -----

    def test_bind_with_secret(self):
        self.conn.response = []

        self.adapter.search("ou=people", SearchOptions())

        kwargs = self.mock_connection.call_args.kwargs
        self.assertEqual(kwargs["user"], "uid=reader,ou=people")
        self.assertEqual(kwargs["password"], "s3cret")
        self.assertTrue(kwargs["read_only"])

    def test_anonymous_bind(self):
        self.conn.response = []
        adapter = LDAPAdapter(ProviderConfig(target="ldap://ds.example.net"))

        adapter.search("ou=people", SearchOptions())

        self.assertNotIn("user", self.mock_connection.call_args.kwargs)

    @patch("ldap_org.adapters.ldap_adapter.keyring.get_password")
    def test_password_from_keyring(self, mock_get_password):
        mock_get_password.return_value = "from-keyring"
        self.conn.response = []
        adapter = LDAPAdapter(
            ProviderConfig(
                target="ldaps://ds.example.net",
                bind=BindConfig(dn="uid=reader,ou=people", keyring_service="ldap_example"),
            )
        )

        adapter.search("ou=people", SearchOptions())

        mock_get_password.assert_called_once_with("ldap_example", "uid=reader,ou=people")
        self.assertEqual(self.mock_connection.call_args.kwargs["password"], "from-keyring")

    @patch("ldap_org.adapters.ldap_adapter.keyring.get_password")
    def test_missing_password_non_interactive(self, mock_get_password):
        mock_get_password.return_value = None
        adapter = LDAPAdapter(
            ProviderConfig(
                target="ldaps://ds.example.net",
                bind=BindConfig(dn="uid=reader,ou=people", keyring_service="ldap_example"),
            )
        )

        with self.assertRaises(ConfigurationError):
            adapter.search("ou=people", SearchOptions())

    def test_unbound_connection_raises(self):
        self.conn.bound = False

        with self.assertRaises(LDAPException):
            self.adapter.search("ou=people", SearchOptions())

    # ----- Test test_connection method -----

    def test_connection_success(self):
        self.conn.search.return_value = True

        self.assertTrue(self.adapter.test_connection())
        self.conn.unbind.assert_called_once()

    def test_connection_failure(self):
        self.mock_connection.side_effect = LDAPException("unreachable")

        self.assertFalse(self.adapter.test_connection())


if __name__ == "__main__":
    unittest.main()

# type: ignore
"""
Paging, result capping and failure handling for LdapUtility.

python-ldap-faker always answers a paged search in a single page, so these
tests script a directory that really splits its results into pages according
to the size and cookie on each request.
"""

import unittest
from dataclasses import dataclass
from unittest.mock import MagicMock, patch

import ldap
from ldap.controls import SimplePagedResultsControl

from ldaputility.constants import NO_LIMIT
from ldaputility.exceptions import (
    ConstructionError,
    DirectoryConnectionError,
    SearchError,
)
from ldaputility.utility import LdapUtility


@dataclass
class Person:
    uid: str | None = None
    cn: str | None = None


@dataclass
class Required:
    uid: str


def make_entries(count):
    return [
        (
            f"uid=user{i},ou=people,dc=example,dc=com",
            {
                "objectClass": [b"inetOrgPerson"],
                "uid": [f"user{i}".encode()],
                "cn": [f"User {i}".encode()],
                f"attr{i % 3}": [b"x"],
            },
        )
        for i in range(count)
    ]


class PagedDirectory:
    """
    A fake connection that serves ``entries`` in pages.  The cookie it hands
    back is the offset of the next page; the last page gets an empty cookie.

    Keyword Args:
        fail_on_page: raise ``ldap.SERVER_DOWN`` when this page (1-based) is
            collected
        trailing_reference: append an AD style search reference to each page

    """

    def __init__(self, entries, fail_on_page=None, trailing_reference=False):
        self.entries = entries
        self.fail_on_page = fail_on_page
        self.trailing_reference = trailing_reference
        #: (offset, size, attrlist) for each page request
        self.requests = []
        self._pending = {}
        self.conn = MagicMock()
        self.conn.search_ext.side_effect = self.search_ext
        self.conn.result3.side_effect = self.result3

    def search_ext(self, base, scope, filterstr, attrlist=None, serverctrls=None):
        control = serverctrls[0]
        offset = int(control.cookie) if control.cookie else 0
        self.requests.append((offset, control.size, attrlist))
        msgid = len(self.requests)
        self._pending[msgid] = (offset, control.size)
        return msgid

    def result3(self, msgid):
        if self.fail_on_page == msgid:
            raise ldap.SERVER_DOWN({"desc": "Can't contact LDAP server"})
        offset, size = self._pending.pop(msgid)
        page = list(self.entries[offset : offset + size])
        if self.trailing_reference:
            page.append((None, ["ldap://other.example.com/dc=example,dc=com"]))
        following = offset + size
        cookie = str(following).encode() if following < len(self.entries) else b""
        response = SimplePagedResultsControl(True, size=0, cookie=cookie)
        return ldap.RES_SEARCH_RESULT, page, msgid, [response]


class PagedSearchTestCase(unittest.TestCase):
    def setUp(self):
        self.utility = LdapUtility("ldap://localhost:389", use_ssl=False)

    def serve(self, directory):
        patcher = patch("ldaputility.ldap.initialize", return_value=directory.conn)
        patcher.start()
        self.addCleanup(patcher.stop)
        return directory


class TestPaging(PagedSearchTestCase):
    def test_page_size_does_not_change_results(self):
        entries = make_entries(7)
        expected = [f"user{i}" for i in range(7)]
        for pagesize in (1, 2, 3, 7, 1000):
            with self.subTest(pagesize=pagesize):
                self.serve(PagedDirectory(entries))
                results = self.utility.search(
                    "ou=people,dc=example,dc=com",
                    "(objectClass=inetOrgPerson)",
                    Person,
                    limit=NO_LIMIT,
                    pagesize=pagesize,
                )
                self.assertEqual([r.uid for r in results], expected)

    def test_one_request_per_page(self):
        directory = self.serve(PagedDirectory(make_entries(5)))
        self.utility.search(
            "ou=people,dc=example,dc=com", "(uid=*)", Person, limit=NO_LIMIT, pagesize=2
        )
        self.assertEqual([(o, s) for o, s, _ in directory.requests], [(0, 2), (2, 2), (4, 2)])

    def test_every_page_uses_a_new_control(self):
        directory = self.serve(PagedDirectory(make_entries(4)))
        self.utility.search(
            "ou=people,dc=example,dc=com", "(uid=*)", Person, limit=NO_LIMIT, pagesize=2
        )
        controls = [c.kwargs["serverctrls"][0] for c in directory.conn.search_ext.call_args_list]
        self.assertEqual(len(controls), 2)
        self.assertIsNot(controls[0], controls[1])
        self.assertTrue(controls[0].criticality)

    def test_page_requests_are_logged(self):
        self.serve(PagedDirectory(make_entries(5)))
        with self.assertLogs("ldap-utility", level="DEBUG") as logs:
            self.utility.search(
                "ou=people,dc=example,dc=com", "(uid=*)", Person, limit=NO_LIMIT, pagesize=2
            )
        pages = [line for line in logs.output if "ldap.search.page" in line]
        self.assertEqual(len(pages), 3)

    def test_search_references_are_skipped(self):
        self.serve(PagedDirectory(make_entries(3), trailing_reference=True))
        results = self.utility.search(
            "ou=people,dc=example,dc=com", "(uid=*)", Person, limit=NO_LIMIT, pagesize=2
        )
        self.assertEqual([r.uid for r in results], ["user0", "user1", "user2"])

    def test_record_fields_are_requested(self):
        directory = self.serve(PagedDirectory(make_entries(2)))
        self.utility.search("ou=people,dc=example,dc=com", "(uid=*)", Person)
        self.assertEqual(directory.requests[0][2], ["uid", "cn"])

    def test_explicit_attributes_are_requested(self):
        directory = self.serve(PagedDirectory(make_entries(2)))
        results = self.utility.search(
            "ou=people,dc=example,dc=com",
            "(uid=*)",
            Person,
            attributes=["uid", "cn", "mail"],
        )
        self.assertEqual(directory.requests[0][2], ["uid", "cn", "mail"])
        self.assertEqual(len(results), 2)

    def test_scope_is_passed_through(self):
        directory = self.serve(PagedDirectory(make_entries(1)))
        self.utility.search(
            "ou=people,dc=example,dc=com", "(uid=*)", Person, scope=ldap.SCOPE_ONELEVEL
        )
        args = directory.conn.search_ext.call_args.args
        self.assertEqual(args[0], "ou=people,dc=example,dc=com")
        self.assertEqual(args[1], ldap.SCOPE_ONELEVEL)
        self.assertEqual(args[2], "(uid=*)")


class TestLimit(PagedSearchTestCase):
    def test_limit_within_first_page_stops_paging(self):
        directory = self.serve(PagedDirectory(make_entries(10)))
        results = self.utility.search(
            "ou=people,dc=example,dc=com", "(uid=*)", Person, limit=3, pagesize=5
        )
        self.assertEqual([r.uid for r in results], ["user0", "user1", "user2"])
        self.assertEqual(len(directory.requests), 1)

    def test_limit_on_page_boundary_stops_paging(self):
        directory = self.serve(PagedDirectory(make_entries(10)))
        results = self.utility.search(
            "ou=people,dc=example,dc=com", "(uid=*)", Person, limit=4, pagesize=2
        )
        self.assertEqual(len(results), 4)
        self.assertEqual(len(directory.requests), 2)

    def test_limit_across_pages(self):
        directory = self.serve(PagedDirectory(make_entries(10)))
        results = self.utility.search(
            "ou=people,dc=example,dc=com", "(uid=*)", Person, limit=5, pagesize=2
        )
        self.assertEqual([r.uid for r in results], [f"user{i}" for i in range(5)])
        self.assertEqual(len(directory.requests), 3)

    def test_limit_larger_than_directory(self):
        self.serve(PagedDirectory(make_entries(4)))
        results = self.utility.search(
            "ou=people,dc=example,dc=com", "(uid=*)", Person, limit=100, pagesize=3
        )
        self.assertEqual(len(results), 4)

    def test_no_limit_reads_every_page(self):
        directory = self.serve(PagedDirectory(make_entries(25)))
        results = self.utility.search(
            "ou=people,dc=example,dc=com", "(uid=*)", Person, limit=NO_LIMIT, pagesize=10
        )
        self.assertEqual(len(results), 25)
        self.assertEqual(len(directory.requests), 3)

    def test_zero_limit_returns_nothing(self):
        directory = self.serve(PagedDirectory(make_entries(4)))
        results = self.utility.search(
            "ou=people,dc=example,dc=com", "(uid=*)", Person, limit=0, pagesize=2
        )
        self.assertEqual(results, [])
        self.assertEqual(len(directory.requests), 1)

    def test_invalid_limit_and_pagesize(self):
        with self.assertRaises(ValueError):
            self.utility.search("dc=example,dc=com", "(uid=*)", Person, limit=-2)
        with self.assertRaises(ValueError):
            self.utility.search("dc=example,dc=com", "(uid=*)", Person, pagesize=0)


class TestDiscovery(PagedSearchTestCase):
    def test_page_size_does_not_change_attributes(self):
        entries = make_entries(6)
        expected = ["attr0", "attr1", "attr2", "cn", "objectClass", "uid"]
        for pagesize in (1, 4, 1000):
            with self.subTest(pagesize=pagesize):
                self.serve(PagedDirectory(entries))
                attributes = self.utility.get_distinct_attributes(
                    "ou=people,dc=example,dc=com", "(uid=*)", NO_LIMIT, pagesize
                )
                self.assertEqual(attributes, expected)

    def test_discovery_requests_all_attributes(self):
        directory = self.serve(PagedDirectory(make_entries(2)))
        self.utility.get_distinct_attributes("ou=people,dc=example,dc=com", "(uid=*)")
        self.assertIsNone(directory.requests[0][2])

    def test_discovery_honours_limit(self):
        self.serve(PagedDirectory(make_entries(6)))
        attributes = self.utility.get_distinct_attributes(
            "ou=people,dc=example,dc=com", "(uid=*)", 1, 5
        )
        self.assertEqual(attributes, ["attr0", "cn", "objectClass", "uid"])

    def test_discovery_of_nothing(self):
        self.serve(PagedDirectory([]))
        attributes = self.utility.get_distinct_attributes(
            "ou=people,dc=example,dc=com", "(uid=nobody)"
        )
        self.assertEqual(attributes, [])

    def test_generate_class_uses_discovered_attributes(self):
        self.serve(PagedDirectory(make_entries(1)))
        source = self.utility.generate_class(
            "ou=people,dc=example,dc=com", "(uid=*)", "Person"
        )
        self.assertIn("public class Person {", source)
        self.assertIn("public String getObjectClass() {", source)
        self.assertIn("public void setUid(String uid) {", source)
        self.assertNotIn("attr1", source)


class TestFailures(PagedSearchTestCase):
    def test_failure_on_later_page(self):
        directory = self.serve(PagedDirectory(make_entries(6), fail_on_page=2))
        with self.assertRaises(SearchError) as cm:
            self.utility.search(
                "ou=people,dc=example,dc=com", "(uid=*)", Person, limit=NO_LIMIT, pagesize=2
            )
        self.assertIsInstance(cm.exception.__cause__, ldap.SERVER_DOWN)
        directory.conn.unbind_s.assert_called_once()

    def test_failure_during_discovery(self):
        directory = self.serve(PagedDirectory(make_entries(6), fail_on_page=1))
        with self.assertRaises(SearchError):
            self.utility.get_distinct_attributes("ou=people,dc=example,dc=com", "(uid=*)")
        directory.conn.unbind_s.assert_called_once()

    def test_bind_failure(self):
        directory = self.serve(PagedDirectory(make_entries(2)))
        directory.conn.simple_bind_s.side_effect = ldap.INVALID_CREDENTIALS(
            {"desc": "Invalid credentials"}
        )
        with self.assertRaises(SearchError) as cm:
            self.utility.search("ou=people,dc=example,dc=com", "(uid=*)", Person)
        self.assertIsInstance(cm.exception.__cause__, DirectoryConnectionError)
        directory.conn.search_ext.assert_not_called()
        directory.conn.unbind_s.assert_called_once()

    def test_unreachable_server(self):
        with patch(
            "ldaputility.ldap.initialize",
            side_effect=ldap.SERVER_DOWN({"desc": "Can't contact LDAP server"}),
        ):
            with self.assertRaises(SearchError) as cm:
                self.utility.search("ou=people,dc=example,dc=com", "(uid=*)", Person)
        self.assertIsInstance(cm.exception.__cause__, DirectoryConnectionError)

    def test_construction_failure_propagates(self):
        directory = self.serve(PagedDirectory(make_entries(2)))
        with self.assertRaises(ConstructionError):
            self.utility.search("ou=people,dc=example,dc=com", "(uid=*)", Required)
        directory.conn.unbind_s.assert_called_once()

    def test_missing_tls_file_raises_oserror(self):
        directory = self.serve(PagedDirectory(make_entries(2)))
        utility = LdapUtility(
            "ldap://localhost:389", use_ssl=False, tls_ca_certfile="/nonexistent/ca.pem"
        )
        with self.assertRaises(OSError):
            utility.search("ou=people,dc=example,dc=com", "(uid=*)", Person)
        with self.assertRaises(OSError):
            utility.authentication(
                "uid=user0,ou=people,dc=example,dc=com", "(uid=user0)", "pw", Person
            )
        directory.conn.search_ext.assert_not_called()
        self.assertEqual(directory.conn.unbind_s.call_count, 2)

    def test_unbind_failure_is_not_raised(self):
        directory = self.serve(PagedDirectory(make_entries(2)))
        directory.conn.unbind_s.side_effect = ldap.SERVER_DOWN({"desc": "gone"})
        results = self.utility.search("ou=people,dc=example,dc=com", "(uid=*)", Person)
        self.assertEqual(len(results), 2)


class TestBind(PagedSearchTestCase):
    def test_anonymous_bind_without_service_identity(self):
        directory = self.serve(PagedDirectory(make_entries(1)))
        self.utility.search("ou=people,dc=example,dc=com", "(uid=*)", Person)
        directory.conn.simple_bind_s.assert_called_once_with()
        directory.conn.start_tls_s.assert_not_called()

    def test_service_identity_bind(self):
        directory = self.serve(PagedDirectory(make_entries(1)))
        utility = LdapUtility(
            "ldap://localhost:389",
            use_ssl=False,
            bind_dn="cn=reader,dc=example,dc=com",
            password="secret",
        )
        utility.search("ou=people,dc=example,dc=com", "(uid=*)", Person)
        directory.conn.simple_bind_s.assert_called_once_with(
            "cn=reader,dc=example,dc=com", "secret"
        )

    def test_starttls_for_ldap_url_with_ssl(self):
        directory = self.serve(PagedDirectory(make_entries(1)))
        utility = LdapUtility("ldap://localhost:389", use_ssl=True)
        utility.search("ou=people,dc=example,dc=com", "(uid=*)", Person)
        directory.conn.start_tls_s.assert_called_once_with()

    def test_ldaps_for_bare_host_with_ssl(self):
        directory = MagicMock()
        with patch("ldaputility.ldap.initialize", return_value=directory.conn) as init:
            directory.conn.search_ext.return_value = 1
            directory.conn.result3.return_value = (ldap.RES_SEARCH_RESULT, [], 1, [])
            LdapUtility("ldap.example.com", use_ssl=True).search(
                "dc=example,dc=com", "(uid=*)", Person
            )
        init.assert_called_once_with("ldaps://ldap.example.com")
        directory.conn.start_tls_s.assert_not_called()

    def test_connection_options(self):
        directory = self.serve(PagedDirectory(make_entries(1)))
        utility = LdapUtility("ldap://localhost:389", use_ssl=False, timeout=5)
        utility.search("ou=people,dc=example,dc=com", "(uid=*)", Person)
        directory.conn.set_option.assert_any_call(ldap.OPT_REFERRALS, 0)
        directory.conn.set_option.assert_any_call(ldap.OPT_NETWORK_TIMEOUT, 5.0)
        directory.conn.set_option.assert_any_call(
            ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_NEVER
        )


class TestAuthentication(PagedSearchTestCase):
    def test_search_failure_after_bind(self):
        directory = self.serve(PagedDirectory(make_entries(1)))
        directory.conn.search_ext.side_effect = ldap.OPERATIONS_ERROR({"desc": "boom"})
        with self.assertRaises(SearchError) as cm:
            self.utility.authentication(
                "uid=user0,ou=people,dc=example,dc=com", "(uid=user0)", "pw", Person
            )
        self.assertIsInstance(cm.exception.__cause__, ldap.OPERATIONS_ERROR)
        directory.conn.unbind_s.assert_called_once()

    def test_first_entry_wins(self):
        directory = self.serve(PagedDirectory(make_entries(3)))
        directory.conn.search_ext.side_effect = None
        directory.conn.search_ext.return_value = 7
        directory.conn.result3.side_effect = None
        directory.conn.result3.return_value = (
            ldap.RES_SEARCH_RESULT,
            make_entries(3),
            7,
            [],
        )
        person = self.utility.authentication(
            "ou=people,dc=example,dc=com", "(uid=*)", "pw", Person
        )
        self.assertEqual(person.uid, "user0")
        directory.conn.simple_bind_s.assert_called_once_with(
            "ou=people,dc=example,dc=com", "pw"
        )
        args = directory.conn.search_ext.call_args.args
        self.assertEqual(args[1], ldap.SCOPE_SUBTREE)
        self.assertIsNone(args[3])


if __name__ == "__main__":
    unittest.main()

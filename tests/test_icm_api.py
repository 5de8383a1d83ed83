"""
Unit Tests for the ICM API client

HTTP sessions are mocked; no network access.
"""

import unittest
from unittest.mock import MagicMock, Mock, patch

import requests

from icm_extractor.coreutils.request import new_session
from icm_extractor.extract.icm_api import ICMClient
from icm_extractor.extract.schemas import Credentials, QueryScope
from icm_extractor.extract.session_cache import SessionCache


def json_response(data, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = data
    response.raise_for_status.return_value = None
    return response


class TestAuthenticate(unittest.TestCase):
    def setUp(self):
        self.credentials = Credentials("user", "secret")
        self.session = MagicMock()
        self.session.headers = {}
        self.session.hooks = {"response": []}

        patcher = patch("icm_extractor.extract.icm_api.new_session", return_value=self.session)
        self.mock_new_session = patcher.start()
        self.addCleanup(patcher.stop)

        self.client = ICMClient(https_proxy="http://proxy:3128", login_url="https://login.test")

    def test_login_sets_authorization_header(self):
        login = json_response({})
        login.headers = {"authorization": "Bearer abc"}
        self.session.post.return_value = login

        session = self.client.authenticate(self.credentials)

        self.assertIs(session, self.session)
        self.mock_new_session.assert_called_once_with("http://proxy:3128")
        _, kwargs = self.session.post.call_args
        self.assertEqual(kwargs["json"]["username"], "user")
        self.assertEqual(kwargs["json"]["password"], "secret")
        self.assertEqual(self.session.headers["authorization"], "Bearer abc")
        self.assertEqual(self.session.headers["Accept-Language"], "EN")
        self.assertEqual(len(self.session.hooks["response"]), 1)

    def test_missing_authorization_header_fails(self):
        login = json_response({})
        login.headers = {}
        self.session.post.return_value = login

        with self.assertRaises(requests.HTTPError):
            self.client.authenticate(self.credentials)
        self.session.close.assert_called_once()

    def test_unauthorized_response_evicts_session(self):
        login = json_response({})
        login.headers = {"authorization": "Bearer abc"}
        self.session.post.return_value = login

        session = self.client.session_cache.get(self.credentials)
        self.assertIn(self.credentials, self.client.session_cache)

        hook = session.hooks["response"][0]
        hook(Mock(status_code=200, url="https://rest.test/ok"))
        self.assertIn(self.credentials, self.client.session_cache)

        hook(Mock(status_code=401, url="https://rest.test/denied"))
        self.assertNotIn(self.credentials, self.client.session_cache)

    def test_injected_empty_cache_is_kept(self):
        factory = Mock(return_value=self.session)
        cache = SessionCache(factory)
        self.assertEqual(len(cache), 0)

        client = ICMClient(session_cache=cache)

        self.assertIs(client.session_cache, cache)
        self.assertIs(client.session_cache.get(self.credentials), self.session)
        factory.assert_called_once_with(self.credentials)
        self.assertIn(self.credentials, cache)


class TestFetchers(unittest.TestCase):
    def setUp(self):
        self.credentials = Credentials("user", "secret")
        self.session = Mock()
        self.session_cache = Mock()
        self.session_cache.get.return_value = self.session
        self.client = ICMClient(
            timeout=30,
            session_cache=self.session_cache,
            rest_url="https://rest.test/",
            assets_url="https://assets.test",
        )

    def respond(self, data):
        self.session.request.return_value = json_response(data)

    def test_status_labels_keep_valid_entries(self):
        self.respond(
            {
                "UPP_STATUS": [
                    {"data": "G", "label": "Good", "isValid": True},
                    {"data": "Z", "label": "Old", "isValid": False},
                    {"data": "N", "label": "New", "isValid": True},
                ]
            }
        )

        labels = self.client.get_status_labels(self.credentials)

        self.assertEqual(labels, {"G": "Good", "N": "New"})
        self.session.request.assert_called_once_with(
            "GET",
            "https://rest.test/lov/",
            timeout=30,
            params={"listValIds": "UPP_STATUS"},
        )
        self.session_cache.get.assert_called_once_with(self.credentials)

    def test_field_names_skip_nested_entries(self):
        self.respond(
            {"columns": {"chgelem": {"partNo": "Part No.", "group": {"x": "y"}}}}
        )

        self.assertEqual(self.client.get_field_names(self.credentials), {"partNo": "Part No."})
        method, url = self.session.request.call_args[0]
        self.assertEqual((method, url), ("GET", "https://assets.test/i18n/en.json"))

    def test_attribute_names(self):
        self.respond(
            [
                {
                    "classParams": [
                        {"classParamSeq": 1, "paramSeq": {"descText": "Color"}},
                        {
                            "classParamSeq": 2,
                            "paramSeq": {"descText": None, "paramLongName": "Weight"},
                        },
                        {"classParamSeq": 3, "paramSeq": {"descText": ""}},
                    ]
                },
                {"classParams": None},
            ]
        )

        names = self.client.get_attribute_names(self.credentials, QueryScope(1, 2, 3))

        self.assertEqual(names, {1: "Color", 2: "Weight"})
        _, kwargs = self.session.request.call_args
        self.assertEqual(
            kwargs["json"],
            {"prjstructSeq": 0, "prostructSeq": 1, "uppgenerationSeq": 2, "uppviewSeq": 3},
        )

    def test_upp_mat_data_posts_query(self):
        self.respond([{"chgelemChgnoteSeqTech": 1}])

        rows = self.client.get_upp_mat_data(self.credentials, QueryScope())

        self.assertEqual(rows, [{"chgelemChgnoteSeqTech": 1}])
        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ("POST", "https://rest.test/upp/uppMatDataProvider"))
        self.assertEqual(
            [query["dataProviderName"] for query in kwargs["json"]],
            ["DP_UPPVIEWMAT", "DP_MANDATORY"],
        )

    def test_part_data_posts_keys(self):
        self.respond([])

        self.client.get_part_data(self.credentials, [10, -1])

        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ("POST", "https://rest.test/dataprovider/chgelemPart"))
        self.assertEqual(kwargs["json"], [10, -1])

    def test_attribute_values_put_query(self):
        self.respond([])

        self.client.get_attribute_values(self.credentials, [1, 2], [100])

        args, kwargs = self.session.request.call_args
        self.assertEqual(
            args, ("PUT", "https://rest.test/dataprovider/uppviewMatClassParamDataProvider")
        )
        self.assertEqual(kwargs["json"]["classParamSeqs"], [1, 2])
        self.assertEqual(kwargs["json"]["uppviewMatSeqs"], [100])

    def test_http_errors_propagate(self):
        response = json_response({})
        response.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
        self.session.request.return_value = response

        with self.assertRaises(requests.HTTPError):
            self.client.get_status_labels(self.credentials)


def test_new_session_with_proxy():
    session = new_session("http://proxy:3128")

    assert session.proxies["https"] == "http://proxy:3128"
    assert session.headers["Accept"] == "application/json"
    assert session.get_adapter("https://example.com").max_retries.connect == 2


def test_new_session_without_proxy_ignores_environment():
    assert new_session().trust_env is False

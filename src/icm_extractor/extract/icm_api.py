"""
ICM API Client - Pure I/O Operations

This module handles all calls to the ICM REST endpoints with no business logic.
Returns raw data structures that can be processed by the transformation layer.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import requests

from ..coreutils.request import new_session
from .schemas import (
    LOGIN_CLAIMS,
    UPP_STATUS_LIST,
    Credentials,
    QueryScope,
    class_param_data_query,
    upp_mat_data_query,
    upp_view_mat_classes_filter_query,
)
from .session_cache import SessionCache

logger = logging.getLogger(__name__)

# API Endpoints
LOGIN_URL = "https://b2b.magnasteyr.com/accessmanager-access/jwt/login"
REST_URL = "https://apps01.magnasteyr.com/icmnfRest"
ASSETS_URL = "https://apps01.magnasteyr.com/icmnfext/assets"

AUTH_HEADER = "authorization"


class ICMClient:
    """Source provider for the ICM change-management system"""

    def __init__(
        self,
        https_proxy: Optional[str] = None,
        timeout: float = 300.0,
        session_cache: Optional[SessionCache] = None,
        login_url: str = LOGIN_URL,
        rest_url: str = REST_URL,
        assets_url: str = ASSETS_URL,
    ):
        self.https_proxy = https_proxy
        self.timeout = timeout
        self.login_url = login_url
        self.rest_url = rest_url.rstrip("/")
        self.assets_url = assets_url.rstrip("/")
        self.session_cache = (
            session_cache if session_cache is not None else SessionCache(self.authenticate)
        )

    def authenticate(self, credentials: Credentials) -> requests.Session:
        """Log in and return a session carrying the issued authorization header

        The session evicts itself from the cache on any 401 response.
        """
        session = new_session(self.https_proxy)

        try:
            response = session.post(
                self.login_url,
                json={
                    "username": credentials.username,
                    "password": credentials.password,
                    "claims": LOGIN_CLAIMS,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()

            token = response.headers.get(AUTH_HEADER)
            if not token:
                raise requests.HTTPError(
                    "Login response carried no authorization header", response=response
                )

        except requests.RequestException:
            session.close()
            raise

        session.headers.update({AUTH_HEADER: token, "Accept-Language": "EN"})
        session.hooks["response"].append(self._unauthorized_hook(credentials, session))

        logger.info(f"✅ Authenticated {credentials.username}")
        return session

    def _unauthorized_hook(self, credentials: Credentials, session: requests.Session):
        def evict_on_unauthorized(response: requests.Response, *args, **kwargs):
            if response.status_code == 401:
                logger.warning(f"Authorization rejected by {response.url}")
                self.session_cache.invalidate(credentials, session)
            return response

        return evict_on_unauthorized

    def _request(self, credentials: Credentials, method: str, url: str, **kwargs) -> Any:
        session = self.session_cache.get(credentials)

        logger.debug(f"{method} {url}")
        start_time = time.time()

        response = session.request(method, url, timeout=self.timeout, **kwargs)
        response.raise_for_status()

        data = response.json()
        logger.info(f"Fetched from {url}: {time.time() - start_time:.2f} seconds")
        return data

    def get_status_labels(
        self, credentials: Credentials, list_id: str = UPP_STATUS_LIST
    ) -> Dict[Any, str]:
        """
        Fetch the data-to-label mapping of a list of values

        Returns:
            Dict: Stored value -> display label, valid entries only
        """
        data = self._request(
            credentials, "GET", f"{self.rest_url}/lov/", params={"listValIds": list_id}
        )

        return {
            item["data"]: item["label"]
            for item in (data.get(list_id) or [])
            if item.get("isValid")
        }

    def get_field_names(self, credentials: Credentials) -> Dict[str, str]:
        """
        Fetch English column labels for change-element properties

        Returns:
            Dict: Property name -> English label
        """
        data = self._request(credentials, "GET", f"{self.assets_url}/i18n/en.json")

        return {
            key: value
            for key, value in data["columns"]["chgelem"].items()
            if isinstance(value, str)
        }

    def get_upp_mat_data(
        self, credentials: Credentials, scope: QueryScope
    ) -> List[Dict[str, Any]]:
        """Fetch UPP material rows (status per change element)"""
        return self._request(
            credentials,
            "POST",
            f"{self.rest_url}/upp/uppMatDataProvider",
            json=upp_mat_data_query(scope),
        )

    def get_part_data(
        self, credentials: Credentials, chgelem_chgnote_seqs: List[int]
    ) -> List[Dict[str, Any]]:
        """Fetch change-element part rows for the given change-note keys"""
        return self._request(
            credentials,
            "POST",
            f"{self.rest_url}/dataprovider/chgelemPart",
            json=chgelem_chgnote_seqs,
        )

    def get_attribute_names(
        self, credentials: Credentials, scope: QueryScope
    ) -> Dict[int, str]:
        """
        Fetch class-parameter labels

        Returns:
            Dict: classParamSeq -> description (or long name); unlabeled params are skipped
        """
        data = self._request(
            credentials,
            "PUT",
            f"{self.rest_url}/upp/uppviewMatClassesFilter",
            json=upp_view_mat_classes_filter_query(scope),
        )

        names = {}
        for item in data:
            for class_param in item.get("classParams") or []:
                param = class_param.get("paramSeq") or {}

                label = param.get("descText")
                if label is None:
                    label = param.get("paramLongName")
                if label:
                    names[class_param["classParamSeq"]] = label

        return names

    def get_attribute_values(
        self,
        credentials: Credentials,
        class_param_seqs: List[int],
        uppview_mat_seqs: List[int],
    ) -> List[Dict[str, Any]]:
        """Fetch class-parameter values for the given UPP view rows"""
        return self._request(
            credentials,
            "PUT",
            f"{self.rest_url}/dataprovider/uppviewMatClassParamDataProvider",
            json=class_param_data_query(class_param_seqs, uppview_mat_seqs),
        )

"""
Extract Layer Schemas

Credentials and the query descriptors sent to the ICM data providers.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

UPP_STATUS_LIST = "UPP_STATUS"

# UPP statuses pulled on every extraction
UPP_STATUS_FILTER = "N;|;G;|;Z;|;Y"

LOGIN_CLAIMS = ["name", "mail", "sn", "givenName", "exp"]


@dataclass(frozen=True, eq=False)
class Credentials:
    """ICM login; compared and hashed by identity so it can key the session cache"""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class QueryScope:
    """Product structure, UPP generation and view the extraction is limited to"""

    prostruct_seq: int = 3321
    uppgeneration_seq: int = 1841
    uppview_seq: int = 81


def _classification_filter(key: str, value: str) -> Dict[str, Any]:
    return {
        "type": "MsfClassificationFilterSetting",
        "additionalCriteria": None,
        "filterKey": key,
        "filterValue": value,
        "multivalueExactMatch": False,
        "useAndConcatenation": False,
        "useCaseSensitiveComparision": True,
        "useWildCards": False,
    }


def upp_mat_data_query(scope: QueryScope) -> List[Dict[str, Any]]:
    """Body for the UPP material data provider"""
    return [
        {
            "additionalCriteria": None,
            "dataProviderName": "DP_UPPVIEWMAT",
            "foreignKeyName": "uppviewMatSeq",
            "dpEntityClass": None,
            "filterValues": [_classification_filter("uppStatus", UPP_STATUS_FILTER)],
        },
        {
            "additionalCriteria": None,
            "dataProviderName": "DP_MANDATORY",
            "foreignKeyName": None,
            "dpEntityClass": None,
            "filterValues": [
                _classification_filter(
                    "MANDATORY_FILTER_UPPGENERATION", str(scope.uppgeneration_seq)
                ),
                _classification_filter("MANDATORY_FILTER_UPPVIEW", str(scope.uppview_seq)),
                _classification_filter("MANDATORY_FILTER_PRODUCT_TYPE", "MOD"),
                _classification_filter("MANDATORY_FILTER_PRODUCT", str(scope.prostruct_seq)),
            ],
        },
    ]


def upp_view_mat_classes_filter_query(scope: QueryScope) -> Dict[str, Any]:
    """Body for the class-parameter column name lookup"""
    return {
        "prjstructSeq": 0,
        "prostructSeq": scope.prostruct_seq,
        "uppgenerationSeq": scope.uppgeneration_seq,
        "uppviewSeq": scope.uppview_seq,
    }


def class_param_data_query(
    class_param_seqs: List[int], uppview_mat_seqs: List[int]
) -> Dict[str, Any]:
    """Body for the class-parameter value provider"""
    return {
        "calcPermissions": True,
        "calcQuality": False,
        "classParamSeqs": class_param_seqs,
        "uppviewMatSeqs": uppview_mat_seqs,
    }
